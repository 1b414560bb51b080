from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from careflow.permissions import IsPatientRole, IsPharmacyRole
from careflow.serializers.prescriptions import (
    PrescriptionIssueSerializer,
    PrescriptionListQuerySerializer,
    PrescriptionRouteSerializer,
)
from careflow.services import prescriptions, workflow
from careflow.services.projections import list_prescriptions, prescription_to_dict


def _ok(rx, code=status.HTTP_200_OK):
    return Response({'ok': True, 'data': prescription_to_dict(rx)}, status=code)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def prescription_collection(request):
    if request.method == 'POST':
        s = PrescriptionIssueSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        d = s.validated_data
        rx = workflow.issue_prescription(
            request.user,
            appointment_id=d['appointmentId'],
            diagnosis=d['diagnosis'],
            items=s.service_items(),
            validity_days=d.get('validityDays'),
            notes=d.get('notes', ''),
        )
        return _ok(rx, status.HTTP_201_CREATED)

    q = PrescriptionListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    page = q.validated_data.get('page', 1)
    page_size = q.validated_data.get('pageSize', 20)
    data, total = list_prescriptions(
        request.user, status=q.validated_data.get('status'), page=page, page_size=page_size,
    )
    return Response({'ok': True, 'data': data, 'pagination': {'total': total, 'page': page, 'pageSize': page_size}})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def prescription_detail(request, prescription_id):
    return _ok(prescriptions.get_for_actor(request.user, prescription_id))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def prescription_pharmacies(request, prescription_id):
    return Response({'ok': True, 'data': prescriptions.candidate_agents(request.user, prescription_id)})


@api_view(['POST'])
@permission_classes([IsPatientRole])
def prescription_route(request, prescription_id):
    s = PrescriptionRouteSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return _ok(workflow.route_prescription(request.user, prescription_id, s.validated_data['pharmacyId']))


@api_view(['POST'])
@permission_classes([IsPharmacyRole])
def prescription_dispense(request, prescription_id):
    return _ok(workflow.dispense_prescription(request.user, prescription_id))
