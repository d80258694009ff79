from django.contrib.auth import get_user_model

from academy.models import Coupon, Course, CoursePricing

User = get_user_model()


def create_course(
    title="Builder's Program",
    inr_regular=6499,
    inr_early_bird=4999,
    usd_regular=199,
    usd_early_bird=149,
    is_early_bird_active=False,
    early_bird_end_date=None,
    is_active=True,
):
    course = Course.objects.create(title=title, is_active=is_active, total_weeks=5)
    CoursePricing.objects.create(
        course=course,
        inr_regular=inr_regular,
        inr_early_bird=inr_early_bird,
        usd_regular=usd_regular,
        usd_early_bird=usd_early_bird,
        is_early_bird_active=is_early_bird_active,
        early_bird_end_date=early_bird_end_date,
    )
    return course


def create_coupon(code, type=Coupon.Type.PERCENT, value=10, active=True):
    return Coupon.objects.create(code=code, type=type, value=value, active=active)


def create_user(username="student", email="student@example.com", password="Str0ng-Passw0rd!", **extra):
    return User.objects.create_user(username=username, email=email, password=password, **extra)
