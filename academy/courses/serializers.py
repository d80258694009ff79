from rest_framework import serializers

from .models import Course, CoursePricing


class PriceRequestSerializer(serializers.Serializer):
    """
    Body of the price endpoint and of the checkout endpoints.

    `region` and `earlyBirdOverride` are only honoured when client overrides
    are enabled; see academy.courses.regions.
    """

    courseId = serializers.UUIDField(source="course_id", required=False, allow_null=True)
    coupon = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=64)
    region = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=16)
    earlyBirdOverride = serializers.BooleanField(
        source="early_bird_override", required=False, allow_null=True, default=None
    )


class CoursePricingSerializer(serializers.ModelSerializer):
    class Meta:
        model = CoursePricing
        fields = [
            "inr_regular",
            "inr_early_bird",
            "usd_regular",
            "usd_early_bird",
            "is_early_bird_active",
            "early_bird_end_date",
        ]


class CourseSerializer(serializers.ModelSerializer):
    pricing = CoursePricingSerializer(read_only=True)

    class Meta:
        model = Course
        fields = ["id", "title", "is_active", "start_date", "total_weeks", "pricing"]
        read_only_fields = fields

