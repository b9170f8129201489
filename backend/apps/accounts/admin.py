from django.contrib import admin

from .models import Account, AccountDepartment, Department


class AccountDepartmentInline(admin.TabularInline):
    model = AccountDepartment
    extra = 0


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ("name", "created_at")
    search_fields = ("name",)


@admin.register(Account)
class AccountAdmin(admin.ModelAdmin):
    list_display = ("name", "email", "role")
    list_filter = ("role",)
    search_fields = ("name", "email")
    exclude = ("password", "departments")
    inlines = [AccountDepartmentInline]
