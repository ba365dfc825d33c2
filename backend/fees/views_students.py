from rest_framework import mixins, status, viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from .admissions import admit_student
from .domain_students import Student
from .serializers_students import StudentSerializer
from .views_fees import FeeEngineErrorMixin, is_truthy, warnings_payload


class StudentViewSet(FeeEngineErrorMixin, mixins.ListModelMixin, mixins.RetrieveModelMixin,
                     viewsets.GenericViewSet):
    """
    Admissions.

    POST /api/students/ creates the student and links fees; a failed link
    still answers 201 with ``fees.linked = false`` and a warning.
    """
    serializer_class = StudentSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        qs = Student.objects.all().order_by('-created_at', '-id')
        q = (self.request.query_params.get('q') or '').strip()
        if q:
            qs = qs.filter(admission_no__icontains=q) | qs.filter(personal_info__fullName__icontains=q)
        return qs

    def create(self, request, *args, **kwargs):
        link = request.data.get('linkFees', True) if hasattr(request.data, 'get') else True
        result = admit_student(request.data, admitted_by=request.user, link_fees=is_truthy(link))
        return Response({
            'student': self.get_serializer(result.student).data,
            'fees': result.link.as_dict() if result.link else None,
            'warnings': warnings_payload(result.warnings),
        }, status=status.HTTP_201_CREATED)
