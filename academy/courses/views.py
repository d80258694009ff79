"""
Pricing Views

Endpoints
---------

1. PriceView
   - URL: /api/academy/price/
   - Method: POST
   - Auth: None
   - Body: {"courseId": "...", "coupon": "EARLY10"}
   - Purpose:
       Returns the price the buyer would be charged right now:
       {"region", "currency", "amount", "display", "earlyBird", "courseId", "couponApplied"}
       `amount` is in minor units (paise, cents). The region comes from the
       CDN country header.

Author: Builder's Program Development Team
Version: 1.0.0
"""

from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from core.payments.tracing import StepTrace

from .pricing import PricingResolver
from .regions import selector_from_request
from .serializers import PriceRequestSerializer


class PriceView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        trace = StepTrace("PAY-PRICE")
        serializer = PriceRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        selector = selector_from_request(request, serializer.validated_data)
        trace.step("Request received", region=selector.region, course_id=selector.course_id, coupon=selector.coupon)

        quote = PricingResolver().resolve(selector)
        trace.step("Price calculated", amount=quote.amount, currency=quote.currency)
        return Response(quote.to_response(), status=status.HTTP_200_OK)
