from django.contrib import admin
from .models import GatewayLog

@admin.register(GatewayLog)
class GatewayLogAdmin(admin.ModelAdmin):
    list_display = ("id", "provider", "direction", "order_id", "endpoint", "status_code", "latency_ms", "created")
    search_fields = ("order_id", "endpoint")
    list_filter = ("provider", "direction", "status_code", "created")
    date_hierarchy = "created"
    readonly_fields = [f.name for f in GatewayLog._meta.fields]
