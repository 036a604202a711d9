from django.contrib import admin

from .models import Room


@admin.register(Room)
class RoomAdmin(admin.ModelAdmin):
    list_display = ("name", "room_type", "capacity", "price_per_night", "is_available", "total_rooms")
    list_filter = ("room_type", "is_available")
    search_fields = ("name", "description")
    ordering = ("name",)
