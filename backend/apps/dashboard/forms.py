from django import forms

from apps.accounts.models import ROLE_CHOICES, ROLE_USER, Department


class DepartmentForm(forms.Form):
    name = forms.CharField(
        label="Name",
        max_length=128,
        widget=forms.TextInput(attrs={"placeholder": "e.g. Finance"}),
    )


class AccountForm(forms.Form):
    name = forms.CharField(
        label="Name",
        max_length=128,
        widget=forms.TextInput(attrs={"placeholder": "Full name"}),
    )
    email = forms.EmailField(
        label="Email",
        widget=forms.EmailInput(attrs={"placeholder": "name@example.com"}),
    )
    password = forms.CharField(
        label="Password",
        max_length=128,
        required=False,
        widget=forms.PasswordInput(attrs={"placeholder": "Password"}),
    )
    role = forms.ChoiceField(label="Role", choices=ROLE_CHOICES, initial=ROLE_USER)
    departments = forms.ModelMultipleChoiceField(
        label="Departments",
        required=False,
        queryset=Department.objects.none(),
        widget=forms.CheckboxSelectMultiple,
    )


class ValueTypeForm(forms.Form):
    name = forms.CharField(
        label="Name",
        max_length=128,
        widget=forms.TextInput(attrs={"placeholder": "e.g. percentage"}),
    )
