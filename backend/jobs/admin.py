from django.contrib import admin

from .models import Customer, Job, JobProduct


class JobProductInline(admin.TabularInline):
    model = JobProduct
    extra = 0
    autocomplete_fields = ("product",)


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("name", "company", "email")
    search_fields = ("name", "company", "email")


@admin.register(Job)
class JobAdmin(admin.ModelAdmin):
    list_display = ("title", "customer", "status", "priority", "invoice", "due_date")
    list_filter = ("status", "priority")
    search_fields = ("title", "customer__name")
    inlines = [JobProductInline]
