from django.contrib import admin

from .models import PasswordResetToken, User

admin.site.register(User)


@admin.register(PasswordResetToken)
class PasswordResetTokenAdmin(admin.ModelAdmin):
    list_display = ("user", "expires_at", "used_at", "created_at")
    search_fields = ("user__email",)
    readonly_fields = ("token_hash",)
