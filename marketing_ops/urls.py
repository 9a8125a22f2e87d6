from django.urls import path

from . import views

urlpatterns = [
    path('auth/login/', views.LoginView.as_view(), name='auth-login'),
    path('auth/refresh/', views.TokenRefreshView.as_view(), name='auth-refresh'),
    path('auth/me/', views.MeView.as_view(), name='auth-me'),
    path('campaigns/', views.CampaignListCreateView.as_view(), name='campaign-list'),
    path('campaigns/<uuid:campaign_id>/', views.CampaignDetailView.as_view(), name='campaign-detail'),
    path('campaigns/<uuid:campaign_id>/status/', views.CampaignStatusView.as_view(), name='campaign-status'),
    path('campaigns/<uuid:campaign_id>/complete/', views.CampaignCompleteView.as_view(), name='campaign-complete'),
    path('influencers/', views.InfluencerListCreateView.as_view(), name='influencer-list'),
    path('influencers/tax-id-check/', views.TaxIdCheckView.as_view(), name='influencer-tax-id-check'),
    path('influencers/<uuid:influencer_id>/', views.InfluencerDetailView.as_view(), name='influencer-detail'),
    path(
        'influencers/<uuid:influencer_id>/access-requests/',
        views.InfluencerAccessRequestView.as_view(),
        name='influencer-access-request',
    ),
    path('access-requests/', views.AccessRequestListView.as_view(), name='access-request-list'),
    path('access-requests/mine/', views.MyAccessRequestListView.as_view(), name='access-request-mine'),
    path(
        'access-requests/<uuid:request_id>/<str:action>/',
        views.AccessRequestDecisionView.as_view(),
        name='access-request-decision',
    ),
    path('departments/', views.DepartmentListCreateView.as_view(), name='department-list'),
    path('departments/upload/', views.DirectoryUploadView.as_view(kind='departments'), name='department-upload'),
    path('departments/<uuid:department_id>/', views.DepartmentDetailView.as_view(), name='department-detail'),
    path('users/', views.UserListCreateView.as_view(), name='user-list'),
    path('users/upload/', views.DirectoryUploadView.as_view(kind='users'), name='user-upload'),
    path('users/<uuid:user_id>/', views.UserDetailView.as_view(), name='user-detail'),
    path('users/<uuid:user_id>/role/', views.UserRoleView.as_view(), name='user-role'),
    path('activity/', views.ActivityLogListView.as_view(), name='activity-list'),
]
