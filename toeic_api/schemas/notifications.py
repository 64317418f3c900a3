"""
Pydantic schemas for notification endpoints.

Every send request names its recipients through `recipients` (addresses),
`userIds`, or both. Broadcast requests carry only the event fields and
reject recipient lists; their recipients are resolved server-side.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, EmailStr, Field, model_validator


class NotificationRequest(BaseModel):
    class Config:
        populate_by_name = True

    def payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"recipients", "user_ids"})


class DirectSendMixin(NotificationRequest):
    recipients: Optional[List[EmailStr]] = Field(None, max_length=1000)
    user_ids: Optional[List[int]] = Field(None, alias="userIds", max_length=1000)

    @model_validator(mode="after")
    def require_recipients(self):
        if not self.recipients and not self.user_ids:
            raise ValueError("Either recipients or userIds is required")
        return self


class BroadcastMixin(NotificationRequest):
    class Config:
        populate_by_name = True
        extra = "forbid"


class SecurityAlertFields(BaseModel):
    alert_type: str = Field(..., alias="alertType", pattern="^(login|password_change|email_change|suspicious_activity)$")
    details: Optional[Dict[str, Any]] = None


class MaintenanceFields(BaseModel):
    maintenance_type: str = Field(..., alias="maintenanceType", pattern="^(scheduled|emergency|completed)$")
    start_time: str = Field(..., alias="startTime", min_length=1, max_length=100)
    end_time: Optional[str] = Field(None, alias="endTime", max_length=100)
    description: Optional[str] = Field(None, max_length=2000)


class ActivityReportFields(BaseModel):
    report_type: str = Field(..., alias="reportType", pattern="^(weekly|monthly|yearly)$")
    activity_data: Dict[str, Any] = Field(default_factory=dict, alias="activityData")


class FeatureItem(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=1000)
    benefits: List[str] = Field(default_factory=list)


class FeatureAnnouncementFields(BaseModel):
    announcement_type: str = Field(..., alias="announcementType", pattern="^(new_feature|major_update|beta_release)$")
    title: str = Field(..., min_length=1, max_length=200)
    features: List[FeatureItem] = Field(default_factory=list)


class SecurityAlertRequest(SecurityAlertFields, DirectSendMixin):
    pass


class MaintenanceRequest(MaintenanceFields, DirectSendMixin):
    pass


class ActivityReportRequest(ActivityReportFields, DirectSendMixin):
    pass


class FeatureAnnouncementRequest(FeatureAnnouncementFields, DirectSendMixin):
    pass


class SecurityAlertBroadcast(SecurityAlertFields, BroadcastMixin):
    pass


class MaintenanceBroadcast(MaintenanceFields, BroadcastMixin):
    pass


class ActivityReportBroadcast(ActivityReportFields, BroadcastMixin):
    pass


class FeatureAnnouncementBroadcast(FeatureAnnouncementFields, BroadcastMixin):
    pass
