from __future__ import annotations

from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from workledger.errors import ApiError
from workledger.models import AttendanceSettings, Holiday
from workledger.schemas import AttendanceSettingsUpsertRequest, HolidayCreateRequest


def get_or_create_attendance_settings(db: Session) -> AttendanceSettings:
    settings_row = db.scalar(select(AttendanceSettings).order_by(AttendanceSettings.id.asc()))
    if settings_row is not None:
        return settings_row

    settings_row = AttendanceSettings(
        work_start_time="09:30",
        late_threshold_minutes=15,
        minimum_work_hours=9.0,
        early_checkout_threshold_hours=8.5,
        allow_multiple_checkins=False,
        enable_geofencing=False,
        geofence_radius_meters=500,
        week_off_days=[6],
        require_checkout=True,
    )
    db.add(settings_row)
    db.commit()
    db.refresh(settings_row)
    return settings_row


def upsert_attendance_settings(db: Session, payload: AttendanceSettingsUpsertRequest) -> AttendanceSettings:
    if payload.enable_geofencing and (payload.office_latitude is None or payload.office_longitude is None):
        raise ApiError(
            status_code=422,
            code="GEOFENCE_CENTER_REQUIRED",
            message="office_latitude and office_longitude are required when geofencing is enabled.",
        )

    settings_row = get_or_create_attendance_settings(db)
    settings_row.work_start_time = payload.work_start_time
    settings_row.late_threshold_minutes = payload.late_threshold_minutes
    settings_row.minimum_work_hours = payload.minimum_work_hours
    settings_row.early_checkout_threshold_hours = payload.early_checkout_threshold_hours
    settings_row.allow_multiple_checkins = payload.allow_multiple_checkins
    settings_row.enable_geofencing = payload.enable_geofencing
    settings_row.office_latitude = payload.office_latitude
    settings_row.office_longitude = payload.office_longitude
    settings_row.geofence_radius_meters = payload.geofence_radius_meters
    settings_row.week_off_days = sorted(set(payload.week_off_days))
    settings_row.require_checkout = payload.require_checkout

    db.commit()
    db.refresh(settings_row)
    return settings_row


def create_holiday(db: Session, payload: HolidayCreateRequest) -> Holiday:
    existing = db.scalar(select(Holiday).where(Holiday.date == payload.date))
    if existing is not None:
        raise ApiError(status_code=409, code="HOLIDAY_EXISTS", message="A holiday already exists on this date.")

    holiday = Holiday(date=payload.date, name=payload.name)
    db.add(holiday)
    db.commit()
    db.refresh(holiday)
    return holiday


def list_holidays(db: Session, *, start_date: date | None = None, end_date: date | None = None) -> list[Holiday]:
    stmt = select(Holiday).order_by(Holiday.date.asc())
    if start_date is not None:
        stmt = stmt.where(Holiday.date >= start_date)
    if end_date is not None:
        stmt = stmt.where(Holiday.date <= end_date)
    return list(db.scalars(stmt).all())


def holiday_dates(db: Session, start_date: date, end_date: date) -> set[date]:
    return {item.date for item in list_holidays(db, start_date=start_date, end_date=end_date)}
