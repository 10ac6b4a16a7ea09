from django.contrib import admin

from .models import Review


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ("trainer", "client", "rating", "created_at")
    list_filter = ("rating",)
    search_fields = ("trainer__email", "client__email", "comment")
