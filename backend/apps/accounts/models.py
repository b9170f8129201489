from django.db import models

ROLE_MANAGER = "manager"
ROLE_USER = "user"
ROLE_CHOICES = [
    (ROLE_MANAGER, "Manager"),
    (ROLE_USER, "User"),
]


class Department(models.Model):
    name = models.CharField(max_length=128, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class Account(models.Model):
    name = models.CharField(max_length=128)
    email = models.EmailField(max_length=254, unique=True)
    password = models.CharField(max_length=128)
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default=ROLE_USER)
    departments = models.ManyToManyField(
        Department,
        through="AccountDepartment",
        related_name="accounts",
        blank=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return f"{self.name} ({self.email})"

    def save(self, *args, **kwargs):
        self.email = (self.email or "").strip().lower()
        super().save(*args, **kwargs)

    @property
    def is_manager(self) -> bool:
        return self.role == ROLE_MANAGER


class AccountDepartment(models.Model):
    account = models.ForeignKey(
        Account,
        on_delete=models.CASCADE,
        related_name="department_links",
    )
    department = models.ForeignKey(
        Department,
        on_delete=models.PROTECT,
        related_name="account_links",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ("account", "department")

    def __str__(self) -> str:
        return f"{self.account.email} -> {self.department.name}"
