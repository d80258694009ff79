"""
Academy Models Registry

This module serves as the central models registry for the academy application.
It imports and exposes all models from the logical submodules (courses,
enrollments) so they are registered with Django's ORM under the `academy` label.

Architecture:
- courses/: Course catalogue, regional pricing rows and coupons
- enrollments/: Enrollment records derived from paid orders

Author: Builder's Program Development Team
Version: 1.0.0
"""

# Import all course-related models for registration with Django ORM
from .courses.models import *  # noqa: F401,F403

# Import all enrollment-related models for registration with Django ORM
from .enrollments.models import *  # noqa: F401,F403
