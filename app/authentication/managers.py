"""
Custom user manager for identity-provider-backed users.

Users are keyed by ``external_id`` (the identity provider's subject) rather
than by username or email. Regular users never hold a usable password; only
staff accounts created for the admin site do.

Related files:
    - models.py: User model that uses this manager
    - services.py: UserService.sync_user, the normal creation path
"""

from django.contrib.auth.models import BaseUserManager


class UserManager(BaseUserManager):
    """
    Custom manager for User model keyed on external identity.

    Usage:
        # Create a regular user (what sync does on first sign-in)
        user = User.objects.create_user(
            external_id="user_2abc",
            email="user@example.com",
            name="Ada",
        )

        # Create an admin-site account
        admin = User.objects.create_superuser(
            external_id="ops",
            email="ops@example.com",
            password="adminpassword",
        )
    """

    def create_user(self, external_id, email, password=None, **extra_fields):
        """
        Create and save a user with the given external identity.

        Args:
            external_id: Identity provider subject (required)
            email: User's email address (required)
            password: Only for admin-site accounts
            **extra_fields: name, image_url, and flags

        Raises:
            ValueError: If external_id or email is missing
        """
        if not external_id:
            raise ValueError("The external_id field must be set")
        if not email:
            raise ValueError("The email field must be set")

        email = self.normalize_email(email)

        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)

        user = self.model(external_id=external_id, email=email, **extra_fields)

        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()

        user.save(using=self._db)
        return user

    def create_superuser(self, external_id, email, password=None, **extra_fields):
        """
        Create and save a superuser for the admin site.

        Raises:
            ValueError: If is_staff or is_superuser is not True
        """
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)

        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True.")

        return self.create_user(external_id, email, password, **extra_fields)
