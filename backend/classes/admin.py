from django.contrib import admin

from .models import FitnessClass


@admin.register(FitnessClass)
class FitnessClassAdmin(admin.ModelAdmin):
    list_display = ("title", "trainer", "class_type", "price", "is_active")
    list_filter = ("class_type", "is_active")
    search_fields = ("title", "trainer__email")
