from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from careflow.serializers.notifications import NotificationReadSerializer
from careflow.services import notifications


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def notification_list(request):
    items, unread = notifications.list_notifications(request.user)
    return Response({'ok': True, 'data': items, 'unreadCount': unread})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def notification_read(request):
    s = NotificationReadSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return Response({'ok': True, 'updated': notifications.mark_read(request.user, s.target)})
