from rest_framework.permissions import BasePermission


class IsTrainer(BasePermission):
    """
    Allow access only to authenticated users registered as trainers.
    Superusers automatically pass.
    """

    message = "Access denied. Trainer role required."

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        if request.user.is_superuser:
            return True
        return request.user.is_trainer
