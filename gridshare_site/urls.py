from django.urls import include, path

urlpatterns = [
    path("api/gridshare/", include("gridshare.urls")),
]
