"""Database models for the marketing operations backend."""
import uuid
from typing import Optional

from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone


def empty_dict():
    return {}


class Department(models.Model):
    """Organisational unit that owns campaigns and scopes access requests."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=120, unique=True)
    hod_name = models.CharField(max_length=120)
    created_at = models.DateTimeField(default=timezone.now)
    version = models.PositiveIntegerField(default=1)

    class Meta:
        ordering = ('name',)

    def __str__(self) -> str:
        return self.name


class UserManager(BaseUserManager):
    """Manager for custom user model that authenticates with email."""

    def create_user(self, email: str, password: Optional[str] = None, **extra_fields):
        if not email:
            raise ValueError('Users must have an email address')
        email = self.normalize_email(email).lower()
        extra_fields.setdefault('role', User.Role.EXECUTIVE)
        user = self.model(email=email, **extra_fields)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_superuser(self, email: str, password: str, **extra_fields):
        extra_fields.setdefault('role', User.Role.SUPER_ADMIN)
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True.')
        return self.create_user(email=email, password=password, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    """Dashboard user; role and department drive every permission decision."""

    class Role(models.TextChoices):
        MANAGER = 'manager', 'Manager'
        EXECUTIVE = 'executive', 'Executive'
        ADMIN = 'admin', 'Admin'
        SUPER_ADMIN = 'super_admin', 'Super Admin'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=120)
    email = models.EmailField(unique=True)
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.EXECUTIVE)
    department = models.ForeignKey(
        Department,
        related_name='users',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
    )
    avatar = models.URLField(max_length=500, blank=True)
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now)
    version = models.PositiveIntegerField(default=1)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['name', 'role']

    objects = UserManager()

    class Meta:
        ordering = ('-created_at',)

    def __str__(self) -> str:
        return f"{self.email} ({self.get_role_display()})"


class Influencer(models.Model):
    """Creator or page the departments run promotions with."""

    class Type(models.TextChoices):
        PERSON = 'Person', 'Person'
        MEME_PAGE = 'Meme Page', 'Meme Page'
        CHANNEL = 'Channel', 'Channel'
        AGENCY = 'Agency', 'Agency'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=160)
    handle = models.CharField(max_length=160, blank=True)
    avatar = models.URLField(max_length=500, blank=True)
    category = models.CharField(max_length=120)
    influencer_type = models.CharField(max_length=20, choices=Type.choices)
    language = models.CharField(max_length=255, blank=True)
    location = models.CharField(max_length=120, blank=True)
    platforms = models.JSONField(default=empty_dict, blank=True)
    email = models.EmailField(blank=True)
    mobile = models.CharField(max_length=32, blank=True)
    tax_id = models.CharField(max_length=10, blank=True, db_index=True)
    last_promo_department = models.ForeignKey(
        Department,
        related_name='promoted_influencers',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
    )
    last_promo_date = models.DateField(null=True, blank=True)
    last_price_paid = models.PositiveIntegerField(null=True, blank=True)
    created_by = models.EmailField(blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)
    version = models.PositiveIntegerField(default=1)

    class Meta:
        ordering = ('name',)

    def __str__(self) -> str:
        return f"{self.name} ({self.handle})" if self.handle else self.name


class Campaign(models.Model):
    """Promotion run with an influencer on behalf of one department."""

    class Status(models.TextChoices):
        PENDING = 'Pending', 'Pending'
        APPROVED = 'Approved', 'Approved'
        REJECTED = 'Rejected', 'Rejected'
        COMPLETED = 'Completed', 'Completed'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=180)
    influencer = models.ForeignKey(
        Influencer,
        related_name='campaigns',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )
    department = models.ForeignKey(Department, related_name='campaigns', on_delete=models.PROTECT)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    budget = models.PositiveBigIntegerField(default=0)
    start_date = models.DateField()
    end_date = models.DateField(null=True, blank=True)
    deliverables = models.TextField(blank=True)
    created_by = models.EmailField(blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)
    status_changed_at = models.DateTimeField(null=True, blank=True)
    status_changed_by = models.EmailField(blank=True)
    status_change_summary = models.TextField(blank=True)
    completion_date = models.DateField(null=True, blank=True)
    completion_summary = models.TextField(blank=True)
    rating = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1), MaxValueValidator(5)],
    )
    version = models.PositiveIntegerField(default=1)

    class Meta:
        ordering = ('-updated_at',)

    def __str__(self) -> str:
        return f"{self.name} [{self.status}]"


class AccessRequest(models.Model):
    """Executive's request to see an influencer's mobile number."""

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        APPROVED = 'approved', 'Approved'
        REJECTED = 'rejected', 'Rejected'
        REVOKED = 'revoked', 'Revoked'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    requester = models.ForeignKey(User, related_name='access_requests', on_delete=models.CASCADE)
    requester_name = models.CharField(max_length=120)
    requester_email = models.EmailField()
    influencer = models.ForeignKey(Influencer, related_name='access_requests', on_delete=models.CASCADE)
    influencer_name = models.CharField(max_length=160)
    department = models.ForeignKey(Department, related_name='access_requests', on_delete=models.PROTECT)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    created_at = models.DateTimeField(default=timezone.now)
    resolved_at = models.DateTimeField(null=True, blank=True)
    resolved_by = models.EmailField(blank=True)
    version = models.PositiveIntegerField(default=1)

    class Meta:
        ordering = ('-created_at',)

    def __str__(self) -> str:
        return f"{self.requester_email} -> {self.influencer_name} ({self.status})"


class ActivityLog(models.Model):
    """Audit log for workflow actions."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    actor_email = models.EmailField()
    action = models.CharField(max_length=255)
    entity_type = models.CharField(max_length=40)
    entity_id = models.CharField(max_length=64)
    metadata = models.JSONField(default=empty_dict, blank=True)
    timestamp = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ('-timestamp',)

    def __str__(self) -> str:
        return f"{self.action} by {self.actor_email}"
