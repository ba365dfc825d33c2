from rest_framework import serializers

from .domain_students import Student


class StudentSerializer(serializers.ModelSerializer):
    """Admission record with its FeeAggregate (``feeInfo``)."""
    srNo = serializers.CharField(source='sr_no', read_only=True)
    admissionNo = serializers.CharField(source='admission_no', read_only=True)
    fullName = serializers.CharField(source='full_name', read_only=True)
    personalInfo = serializers.JSONField(source='personal_info', read_only=True)
    contactInfo = serializers.JSONField(source='contact_info', read_only=True)
    parentInfo = serializers.JSONField(source='parent_info', read_only=True)
    academicInfo = serializers.JSONField(source='academic_info', read_only=True)
    admittedByName = serializers.CharField(source='admitted_by_name', read_only=True)
    primaryInvoiceId = serializers.IntegerField(source='primary_invoice_id', read_only=True)
    feeInfo = serializers.SerializerMethodField()

    class Meta:
        model = Student
        fields = ['id', 'srNo', 'admissionNo', 'fullName', 'personalInfo', 'contactInfo', 'parentInfo',
                  'academicInfo', 'admittedByName', 'feeInfo', 'primaryInvoiceId', 'version',
                  'created_at', 'updated_at']
        read_only_fields = fields

    def get_feeInfo(self, obj):
        info = obj.fee_aggregate().as_dict()
        info['feeStructureId'] = obj.fee_structure_id
        return info
