from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from careflow.permissions import IsCareParticipant, IsDoctorRole
from careflow.serializers.appointments import (
    AppointmentCancelSerializer,
    AppointmentListQuerySerializer,
    AppointmentNoteSerializer,
    AppointmentRequestSerializer,
)
from careflow.services import appointments, workflow
from careflow.services.projections import appointment_to_dict, list_appointments


def _ok(appt, code=status.HTTP_200_OK):
    return Response({'ok': True, 'data': appointment_to_dict(appt)}, status=code)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def appointment_collection(request):
    if request.method == 'POST':
        s = AppointmentRequestSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        d = s.validated_data
        appt = workflow.request_appointment(
            request.user,
            provider_id=d['providerId'],
            department_id=d.get('departmentId'),
            scheduled_at=d['scheduledAt'],
            modality=d['modality'],
            remote_channel=d.get('remoteChannel', ''),
            symptoms=d.get('symptoms', ''),
        )
        return _ok(appt, status.HTTP_201_CREATED)

    q = AppointmentListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    page = q.validated_data.get('page', 1)
    page_size = q.validated_data.get('pageSize', 20)
    data, total = list_appointments(
        request.user,
        status=q.validated_data.get('status'),
        modality=q.validated_data.get('modality'),
        upcoming=q.validated_data.get('upcoming', False),
        page=page,
        page_size=page_size,
    )
    return Response({'ok': True, 'data': data, 'pagination': {'total': total, 'page': page, 'pageSize': page_size}})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def appointment_detail(request, appointment_id):
    return _ok(appointments.get_for_actor(request.user, appointment_id))


@api_view(['POST'])
@permission_classes([IsDoctorRole])
def appointment_confirm(request, appointment_id):
    s = AppointmentNoteSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return _ok(workflow.confirm_appointment(request.user, appointment_id, note=s.validated_data.get('note')))


@api_view(['POST'])
@permission_classes([IsCareParticipant])
def appointment_cancel(request, appointment_id):
    s = AppointmentCancelSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return _ok(workflow.cancel_appointment(request.user, appointment_id, reason=s.validated_data.get('reason')))


@api_view(['POST'])
@permission_classes([IsDoctorRole])
def appointment_complete(request, appointment_id):
    return _ok(workflow.complete_appointment(request.user, appointment_id))
