# mines/urls.py
from django.urls import path
from . import views

urlpatterns = [
    path("players/<str:player_id>/seeds/", views.seeds, name="mines-seeds"),
    path("players/<str:player_id>/seeds/client-seed/", views.update_client_seed, name="mines-client-seed"),
    path("players/<str:player_id>/seeds/rotate/", views.rotate, name="mines-rotate"),
    path("players/<str:player_id>/rounds/", views.rounds, name="mines-rounds"),
    path("players/<str:player_id>/rounds/<uuid:round_id>/", views.round_detail, name="mines-round"),
    path("players/<str:player_id>/rounds/<uuid:round_id>/reveal/", views.reveal, name="mines-reveal"),
    path("players/<str:player_id>/rounds/<uuid:round_id>/cashout/", views.cashout, name="mines-cashout"),
    path("rounds/<uuid:round_id>/verify/", views.verify_stored_round, name="mines-verify-round"),
    path("verify/", views.verify, name="mines-verify"),
    path("multipliers/", views.multipliers, name="mines-multipliers"),
]
