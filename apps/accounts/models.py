"""Custom user model: applicants, referral agents and administrators."""
from decimal import Decimal

from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F
from django.utils.translation import gettext_lazy as _


class UserManager(BaseUserManager):
    """Manager for the custom User model."""

    def create_user(self, phone, password=None, **extra_fields):
        if not phone:
            raise ValueError("Phone number is required.")
        user = self.model(phone=phone, **extra_fields)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_superuser(self, phone, password=None, **extra_fields):
        extra_fields.setdefault("role", User.ROLE_ADMIN)
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        return self.create_user(phone, password, **extra_fields)

    def active_agents(self):
        return self.filter(is_agent=True, is_active=True)


class User(AbstractBaseUser, PermissionsMixin):
    """
    A person who signs in with their mobile number.

    Roles:
        user  → applies to trials for themselves or on someone's behalf
        agent → additionally owns a channel code; applications submitted
                with that code are attributed to them for commission
        admin → reviews applications and moves them through the lifecycle

    is_agent is what channel-code resolution checks; role is what the
    permission decorators check. They are kept separate because an admin
    may also act as an agent.
    """

    ROLE_USER = "user"
    ROLE_AGENT = "agent"
    ROLE_ADMIN = "admin"
    ROLE_CHOICES = [
        (ROLE_USER, _("User")),
        (ROLE_AGENT, _("Agent")),
        (ROLE_ADMIN, _("Administrator")),
    ]

    phone = models.CharField(max_length=11, unique=True)
    name = models.CharField(max_length=50, default="", blank=True)
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_USER)
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False, help_text="Django admin access.")

    # Referral programme
    is_agent = models.BooleanField(default=False)
    channel_code = models.CharField(
        max_length=20, unique=True, null=True, blank=True,
        help_text="Short code agents hand out; attributes applications to them.",
    )
    referral_count = models.PositiveIntegerField(default=0)
    total_earnings = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    # Who referred this user at registration. Distinct from per-application
    # referral attribution (Application.referrer).
    referred_by = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="referrals",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserManager()

    USERNAME_FIELD = "phone"
    REQUIRED_FIELDS = []

    class Meta:
        app_label = "accounts"
        db_table = "users"
        indexes = [
            models.Index(fields=["referred_by"], name="users_referred_by_idx"),
        ]

    def __str__(self):
        return self.name or self.phone

    def get_display_name(self):
        return self.name or self.phone

    @property
    def is_admin(self):
        return self.role == self.ROLE_ADMIN

    def set_referred_by(self, referrer):
        """Record who referred this user. Attribution is one level deep only.

        Refuses self-reference and a referrer who was themselves referred by
        this user, so the graph can never contain a cycle of length 1 or 2.
        """
        if referrer is None:
            self.referred_by = None
            return
        if referrer.pk == self.pk:
            raise ValidationError(_("A user cannot refer themselves."))
        if self.pk is not None and referrer.referred_by_id == self.pk:
            raise ValidationError(_("Referral attribution is limited to one level."))
        self.referred_by = referrer

    def record_referral(self):
        """Atomically add one to referral_count."""
        User.objects.filter(pk=self.pk).update(referral_count=F("referral_count") + 1)

    def add_earnings(self, amount):
        """Atomically add amount to total_earnings."""
        User.objects.filter(pk=self.pk).update(total_earnings=F("total_earnings") + amount)
