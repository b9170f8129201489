from django import forms
from django.utils import timezone

from apps.accounts.models import Department
from apps.common.documents import TRACKING_METHOD_CHOICES, TRACKING_WEEKLY

from .models import DEFAULT_ICON, StrategicGoal

YEARS_AHEAD = 6


def year_choices(extra=()):
    current_year = timezone.localdate().year
    years = {str(current_year + offset) for offset in range(YEARS_AHEAD)}
    years.update(str(year) for year in extra)
    return [(year, year) for year in sorted(years)]


class StrategicGoalForm(forms.Form):
    goal = forms.CharField(
        label="Goal",
        widget=forms.Textarea(attrs={"rows": 3, "placeholder": "Strategic goal text"}),
    )
    years = forms.MultipleChoiceField(
        label="Years",
        choices=(),
        widget=forms.CheckboxSelectMultiple,
    )

    def __init__(self, *args, extra_years=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["years"].choices = year_choices(extra_years)


class OperationalGoalForm(forms.Form):
    strategic_goal = forms.ModelChoiceField(
        label="Strategic goal",
        queryset=StrategicGoal.objects.none(),
        empty_label="Select a strategic goal",
    )
    department = forms.ModelChoiceField(
        label="Department",
        queryset=Department.objects.none(),
        empty_label="Select a department",
    )
    goal = forms.CharField(label="Goal", widget=forms.Textarea(attrs={"rows": 2}))
    indicator = forms.CharField(label="Indicator", widget=forms.Textarea(attrs={"rows": 2}))
    tracking_method = forms.ChoiceField(
        label="Tracking method",
        choices=TRACKING_METHOD_CHOICES,
        initial=TRACKING_WEEKLY,
    )
    weight = forms.DecimalField(label="Weight", required=False, min_value=0, decimal_places=2)
    exclude_from_calculation = forms.BooleanField(label="Exclude from calculation", required=False)
    is_reverse = forms.BooleanField(label="Reverse goal", required=False)
    calculation_method = forms.CharField(
        label="Calculation method",
        required=False,
        widget=forms.Textarea(attrs={"rows": 2}),
    )
    display_on_general = forms.BooleanField(label="Show on dashboard", required=False, initial=True)
    display_on_operational = forms.BooleanField(label="Show on operational goals", required=False, initial=True)
    icon = forms.CharField(label="Icon", required=False, max_length=64, initial=DEFAULT_ICON)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["strategic_goal"].queryset = StrategicGoal.objects.all()
        self.fields["strategic_goal"].label_from_instance = (
            lambda goal: f"{goal.goal} ({goal.years_label})" if goal.years else goal.goal
        )
        self.fields["department"].queryset = Department.objects.all()
