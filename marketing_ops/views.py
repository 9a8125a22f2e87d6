"""API views for the marketing operations backend."""
from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.parsers import MultiPartParser
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from .authentication import LoginService
from .models import User
from .permissions import ADMIN_ROLES, RESOLVER_ROLES
from .serializers import (
    AccessRequestSerializer,
    ActivityLogSerializer,
    ActorSerializer,
    CampaignInputSerializer,
    CampaignSerializer,
    CompletionSerializer,
    DepartmentInputSerializer,
    DepartmentSerializer,
    InfluencerInputSerializer,
    InfluencerSerializer,
    LoginSerializer,
    RoleAssignmentSerializer,
    StatusChangeSerializer,
    TaxIdCheckSerializer,
    TokenRefreshInputSerializer,
    UploadSerializer,
    UserInputSerializer,
    UserSerializer,
    VersionedInputSerializer,
)
from .services import (
    AccessRequestService,
    ActivityService,
    BulkImportService,
    CampaignService,
    DirectoryService,
    InfluencerService,
)

LOGGER = logging.getLogger(__name__)

ADMIN_ONLY = tuple(ADMIN_ROLES)


def _validated(serializer_class, data, *, partial: bool = False) -> tuple[dict, int | None]:
    serializer = serializer_class(data=data, partial=partial)
    serializer.is_valid(raise_exception=True)
    payload = dict(serializer.validated_data)
    expected_version = payload.pop('expected_version', None)
    return payload, expected_version


class LoginView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = LoginService().login(**serializer.validated_data)
        return Response(result)


class TokenRefreshView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = TokenRefreshInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return Response(LoginService().refresh(serializer.validated_data['refresh']))


class MeView(APIView):
    def get(self, request):
        return Response(ActorSerializer(request.user.as_dict()).data)


class CampaignListCreateView(APIView):
    def get(self, request):
        campaigns = CampaignService(actor=request.user).list(
            status=request.query_params.get('status'),
            department=request.query_params.get('department'),
            search=request.query_params.get('search'),
        )
        return Response(CampaignSerializer(campaigns, many=True).data)

    def post(self, request):
        data, _ = _validated(CampaignInputSerializer, request.data)
        campaign = CampaignService(actor=request.user).create(data)
        return Response(CampaignSerializer(campaign).data, status=status.HTTP_201_CREATED)


class CampaignDetailView(APIView):
    def get(self, request, campaign_id):
        return Response(CampaignSerializer(CampaignService(actor=request.user).get(campaign_id)).data)

    def patch(self, request, campaign_id):
        changes, expected_version = _validated(CampaignInputSerializer, request.data, partial=True)
        campaign = CampaignService(actor=request.user).update(
            campaign_id, changes, expected_version=expected_version
        )
        return Response(CampaignSerializer(campaign).data)

    def delete(self, request, campaign_id):
        CampaignService(actor=request.user).delete(campaign_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class CampaignStatusView(APIView):
    allowed_roles = tuple(RESOLVER_ROLES)

    def post(self, request, campaign_id):
        data, expected_version = _validated(StatusChangeSerializer, request.data)
        campaign = CampaignService(actor=request.user).transition(
            campaign_id,
            data['status'],
            data.get('summary'),
            expected_version=expected_version,
        )
        return Response(CampaignSerializer(campaign).data)


class CampaignCompleteView(APIView):
    allowed_roles = tuple(RESOLVER_ROLES)

    def post(self, request, campaign_id):
        data, expected_version = _validated(CompletionSerializer, request.data)
        campaign = CampaignService(actor=request.user).complete(
            campaign_id,
            data['completion_date'],
            data.get('summary'),
            rating=data.get('rating'),
            expected_version=expected_version,
        )
        return Response(CampaignSerializer(campaign).data)


class InfluencerListCreateView(APIView):
    def get(self, request):
        params = request.query_params
        influencers = InfluencerService(actor=request.user).list(
            search=params.get('search'),
            category=params.get('category'),
            language=params.get('language'),
            mine=params.get('mine', '').lower() in ('1', 'true', 'yes'),
        )
        return Response(InfluencerSerializer(influencers, many=True).data)

    def post(self, request):
        data, _ = _validated(InfluencerInputSerializer, request.data)
        influencer = InfluencerService(actor=request.user).create(data)
        return Response(InfluencerSerializer(influencer).data, status=status.HTTP_201_CREATED)


class InfluencerDetailView(APIView):
    def get(self, request, influencer_id):
        return Response(InfluencerSerializer(InfluencerService(actor=request.user).get(influencer_id)).data)

    def patch(self, request, influencer_id):
        changes, expected_version = _validated(InfluencerInputSerializer, request.data, partial=True)
        influencer = InfluencerService(actor=request.user).update(
            influencer_id, changes, expected_version=expected_version
        )
        return Response(InfluencerSerializer(influencer).data)

    def delete(self, request, influencer_id):
        InfluencerService(actor=request.user).delete(influencer_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class TaxIdCheckView(APIView):
    def get(self, request):
        serializer = TaxIdCheckSerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        exclude_id = serializer.validated_data.get('exclude_id')
        result = InfluencerService(actor=request.user).check_tax_id(
            serializer.validated_data['tax_id'],
            exclude_id=str(exclude_id) if exclude_id else None,
        )
        return Response(result)


class InfluencerAccessRequestView(APIView):
    allowed_roles = (User.Role.EXECUTIVE,)

    def post(self, request, influencer_id):
        access_request = AccessRequestService(actor=request.user).request_access(influencer_id)
        return Response(AccessRequestSerializer(access_request).data, status=status.HTTP_201_CREATED)


class AccessRequestListView(APIView):
    allowed_roles = tuple(RESOLVER_ROLES)

    def get(self, request):
        requests = AccessRequestService(actor=request.user).list_for_resolver(
            status=request.query_params.get('status')
        )
        return Response(AccessRequestSerializer(requests, many=True).data)


class MyAccessRequestListView(APIView):
    allowed_roles = (User.Role.EXECUTIVE,)

    def get(self, request):
        requests = AccessRequestService(actor=request.user).list_for_requester()
        return Response(AccessRequestSerializer(requests, many=True).data)


class AccessRequestDecisionView(APIView):
    allowed_roles = tuple(RESOLVER_ROLES)
    actions = ('approve', 'reject', 'revoke')

    def post(self, request, request_id, action):
        if action not in self.actions:
            return Response({'detail': f'Unknown action: {action}'}, status=status.HTTP_404_NOT_FOUND)
        _, expected_version = _validated(VersionedInputSerializer, request.data)
        service = AccessRequestService(actor=request.user)
        resolved = getattr(service, action)(request_id, expected_version=expected_version)
        return Response(AccessRequestSerializer(resolved).data)


class DepartmentListCreateView(APIView):
    allowed_roles = {'post': ADMIN_ONLY}

    def get(self, request):
        departments = DirectoryService(actor=request.user).list_departments()
        return Response(DepartmentSerializer(departments, many=True).data)

    def post(self, request):
        data, _ = _validated(DepartmentInputSerializer, request.data)
        department = DirectoryService(actor=request.user).create_department(data)
        return Response(DepartmentSerializer(department).data, status=status.HTTP_201_CREATED)


class DepartmentDetailView(APIView):
    allowed_roles = ADMIN_ONLY

    def patch(self, request, department_id):
        changes, expected_version = _validated(DepartmentInputSerializer, request.data, partial=True)
        department = DirectoryService(actor=request.user).update_department(
            department_id, changes, expected_version=expected_version
        )
        return Response(DepartmentSerializer(department).data)

    def delete(self, request, department_id):
        DirectoryService(actor=request.user).delete_department(department_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class DirectoryUploadView(APIView):
    parser_classes = [MultiPartParser]
    allowed_roles = ADMIN_ONLY
    kind = 'departments'

    def post(self, request):
        serializer = UploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        service = BulkImportService(actor=request.user)
        rows = service.parse(serializer.validated_data['file'])
        if self.kind == 'users':
            report = service.import_users(rows)
        else:
            report = service.import_departments(rows)
        return Response({'detail': 'Upload processed', **report}, status=status.HTTP_201_CREATED)


class UserListCreateView(APIView):
    allowed_roles = ADMIN_ONLY

    def get(self, request):
        return Response(UserSerializer(DirectoryService(actor=request.user).list_users(), many=True).data)

    def post(self, request):
        data, _ = _validated(UserInputSerializer, request.data)
        user = DirectoryService(actor=request.user).create_user(data)
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)


class UserDetailView(APIView):
    allowed_roles = ADMIN_ONLY

    def patch(self, request, user_id):
        changes, expected_version = _validated(UserInputSerializer, request.data, partial=True)
        user = DirectoryService(actor=request.user).update_user(user_id, changes, expected_version=expected_version)
        return Response(UserSerializer(user).data)

    def delete(self, request, user_id):
        DirectoryService(actor=request.user).delete_user(user_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class UserRoleView(APIView):
    allowed_roles = ADMIN_ONLY

    def post(self, request, user_id):
        serializer = RoleAssignmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = DirectoryService(actor=request.user).assign_role(
            user_id,
            serializer.validated_data['role'],
            serializer.validated_data.get('department'),
        )
        return Response(UserSerializer(user).data)


class ActivityLogListView(APIView):
    allowed_roles = ADMIN_ONLY

    def get(self, request):
        try:
            limit = max(1, min(int(request.query_params.get('limit', 100)), 500))
        except ValueError:
            limit = 100
        entries = ActivityService(actor=request.user).list(limit=limit)
        return Response(ActivityLogSerializer(entries, many=True).data)
