"""URL configuration for the viewer application."""

from django.urls import path

from . import views

app_name = 'viewer'

urlpatterns = [
    path('', views.home, name='home'),
    path('health/', views.health, name='health'),
]
