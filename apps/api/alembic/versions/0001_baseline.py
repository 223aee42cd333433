"""Baseline migration - users, babies, monitoring sessions, detections

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-17

Creates every table of the monitoring backend, including the partial unique
indexes that guarantee one active session per baby and one primary emergency
contact per baby.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """Create all tables."""

    # ==========================================================================
    # Users
    # ==========================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('phone_number', sa.String(30), nullable=True),
        sa.Column('token_version', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
    )

    # ==========================================================================
    # Babies and access lists
    # ==========================================================================
    op.create_table(
        'babies',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('date_of_birth', sa.Date(), nullable=False),
        sa.Column('gender', sa.String(10), nullable=False),
        sa.Column('height_cm', sa.Float(), nullable=False),
        sa.Column('weight_kg', sa.Float(), nullable=False),
        sa.Column('blood_type', sa.String(10), nullable=False),
        sa.Column('profile_picture', sa.String(500), nullable=True),
        sa.Column('allergies', JSONType, nullable=False),
        sa.Column('medical_conditions', JSONType, nullable=False),
        sa.Column('doctor', JSONType, nullable=True),
        sa.Column('sleep_settings', JSONType, nullable=False),
        sa.Column('feeding_settings', JSONType, nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('height_cm >= 20 AND height_cm <= 150', name='ck_babies_height'),
        sa.CheckConstraint('weight_kg >= 0.5 AND weight_kg <= 30', name='ck_babies_weight'),
    )
    op.create_index('idx_babies_active', 'babies', ['is_active'])
    op.create_index('idx_babies_dob', 'babies', ['date_of_birth'])

    op.create_table(
        'baby_parents',
        sa.Column('baby_id', sa.Uuid(), sa.ForeignKey('babies.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('added_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('idx_baby_parents_user', 'baby_parents', ['user_id'])

    op.create_table(
        'baby_caregivers',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('baby_id', sa.Uuid(), sa.ForeignKey('babies.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('relationship_type', sa.String(30), nullable=True),
        sa.Column('view_live_stream', sa.Boolean(), nullable=False),
        sa.Column('receive_alerts', sa.Boolean(), nullable=False),
        sa.Column('edit_routines', sa.Boolean(), nullable=False),
        sa.Column('view_reports', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('baby_id', 'user_id', name='uq_baby_caregivers_baby_user'),
    )
    op.create_index('idx_baby_caregivers_user', 'baby_caregivers', ['user_id'])

    op.create_table(
        'emergency_contacts',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('baby_id', sa.Uuid(), sa.ForeignKey('babies.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('relationship_type', sa.String(50), nullable=False),
        sa.Column('phone_number', sa.String(30), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('is_primary', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        'uq_emergency_contacts_primary',
        'emergency_contacts',
        ['baby_id'],
        unique=True,
        postgresql_where=sa.text('is_primary = TRUE'),
        sqlite_where=sa.text('is_primary = 1'),
    )

    op.create_table(
        'milestones',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('baby_id', sa.Uuid(), sa.ForeignKey('babies.id', ondelete='CASCADE'), nullable=False),
        sa.Column('milestone_type', sa.String(20), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('achieved_date', sa.Date(), nullable=False),
        sa.Column('expected_age_min', sa.Integer(), nullable=True),
        sa.Column('expected_age_max', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('recorded_by_user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('idx_milestones_baby', 'milestones', ['baby_id', 'achieved_date'])

    # ==========================================================================
    # Monitoring sessions
    # ==========================================================================
    op.create_table(
        'monitoring_sessions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('baby_id', sa.Uuid(), sa.ForeignKey('babies.id', ondelete='CASCADE'), nullable=False),
        sa.Column('started_by_user_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('session_type', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('duration_seconds', sa.Integer(), nullable=False),
        sa.Column('settings', JSONType, nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('total_detections', sa.Integer(), nullable=False),
        sa.Column('safety_incidents', sa.Integer(), nullable=False),
        sa.Column('movement_events', sa.Integer(), nullable=False),
        sa.Column('sound_events', sa.Integer(), nullable=False),
        sa.Column('average_motion_level', sa.Float(), nullable=False),
        sa.Column('average_sound_level', sa.Float(), nullable=False),
        *_timestamps(),
    )
    op.create_index('idx_sessions_baby_start', 'monitoring_sessions', ['baby_id', 'start_time'])
    op.create_index('idx_sessions_started_by', 'monitoring_sessions', ['started_by_user_id'])
    op.create_index('idx_sessions_status', 'monitoring_sessions', ['status'])
    # At most one active session per baby
    op.create_index(
        'uq_monitoring_sessions_active_baby',
        'monitoring_sessions',
        ['baby_id'],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )

    op.create_table(
        'session_devices',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('session_id', sa.Uuid(), sa.ForeignKey('monitoring_sessions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('device_id', sa.String(255), nullable=False),
        sa.Column('device_type', sa.String(20), nullable=False),
        sa.Column('platform', sa.String(50), nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('left_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
    )

    op.create_table(
        'session_alerts',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('session_id', sa.Uuid(), sa.ForeignKey('monitoring_sessions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('alert_type', sa.String(20), nullable=False),
        sa.Column('severity', sa.String(20), nullable=False),
        sa.Column('message', sa.String(500), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('acknowledged', sa.Boolean(), nullable=False),
        sa.Column('acknowledged_by_user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('acknowledged_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('details', JSONType, nullable=False),
    )
    op.create_index('idx_session_alerts_session', 'session_alerts', ['session_id', 'timestamp'])

    # ==========================================================================
    # Detections
    # ==========================================================================
    op.create_table(
        'detections',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('baby_id', sa.Uuid(), sa.ForeignKey('babies.id', ondelete='CASCADE'), nullable=False),
        sa.Column('session_id', sa.Uuid(), sa.ForeignKey('monitoring_sessions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('detection_type', sa.String(30), nullable=False),
        sa.Column('severity', sa.String(20), nullable=False),
        sa.Column('confidence', sa.Float(), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('data', JSONType, nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('resolved_by_user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('resolution_notes', sa.Text(), nullable=True),
        sa.Column('is_false_positive', sa.Boolean(), nullable=False),
        sa.Column('false_positive_reason', sa.Text(), nullable=True),
        sa.Column('feedback_is_accurate', sa.Boolean(), nullable=True),
        sa.Column('feedback_comments', sa.Text(), nullable=True),
        sa.Column('feedback_by_user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('feedback_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('escalation_level', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('confidence >= 0 AND confidence <= 1', name='ck_detections_confidence'),
        sa.CheckConstraint(
            'escalation_level >= 0 AND escalation_level <= 5',
            name='ck_detections_escalation_level',
        ),
        sa.CheckConstraint(
            "NOT is_false_positive OR status = 'false_positive'",
            name='ck_detections_false_positive_status',
        ),
    )
    op.create_index('idx_detections_baby_ts', 'detections', ['baby_id', 'timestamp'])
    op.create_index('idx_detections_session', 'detections', ['session_id'])
    op.create_index('idx_detections_baby_type_ts', 'detections', ['baby_id', 'detection_type', 'timestamp'])
    op.create_index('idx_detections_baby_status_ts', 'detections', ['baby_id', 'status', 'timestamp'])
    op.create_index('idx_detections_severity', 'detections', ['severity'])

    op.create_table(
        'detection_alerts',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('detection_id', sa.Uuid(), sa.ForeignKey('detections.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sent_to_user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('method', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('acknowledged_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('action', sa.String(20), nullable=True),
    )
    op.create_index('idx_detection_alerts_detection', 'detection_alerts', ['detection_id'])
    op.create_index('idx_detection_alerts_recipient', 'detection_alerts', ['sent_to_user_id', 'sent_at'])

    op.create_table(
        'detection_escalations',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('detection_id', sa.Uuid(), sa.ForeignKey('detections.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('escalated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
    )


def downgrade() -> None:
    """Drop all tables (reverse dependency order)."""
    for table in (
        'detection_escalations',
        'detection_alerts',
        'detections',
        'session_alerts',
        'session_devices',
        'monitoring_sessions',
        'milestones',
        'emergency_contacts',
        'baby_caregivers',
        'baby_parents',
        'babies',
        'users',
    ):
        op.drop_table(table)
