"""Baseline migration - clinic entities and workflow automation tables

Revision ID: 0001_workflow_tables
Revises:
Create Date: 2026-10-17

Creates the deal/patient tables the workflow engine reads, the workflow
definitions, the enrollment audit tables, and the artifacts workflows write
(tasks, emails, WhatsApp messages, deferred jobs).
"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '0001_workflow_tables'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create clinic and workflow tables."""

    op.execute('CREATE EXTENSION IF NOT EXISTS pgcrypto')  # For gen_random_uuid()

    # ==========================================================================
    # Clinic entities
    # ==========================================================================
    op.execute('''
        CREATE TABLE users (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            email VARCHAR(255),
            full_name VARCHAR(255),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')

    op.execute('''
        CREATE TABLE patients (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            first_name VARCHAR(255),
            last_name VARCHAR(255),
            email VARCHAR(255),
            phone VARCHAR(50),
            source VARCHAR(100),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')

    op.execute('''
        CREATE TABLE services (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(255) NOT NULL
        )
    ''')

    op.execute('''
        CREATE TABLE deal_stages (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(255) NOT NULL,
            type VARCHAR(50) DEFAULT 'open',
            sort_order INTEGER DEFAULT 0
        )
    ''')

    op.execute('''
        CREATE TABLE deals (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            patient_id UUID NOT NULL REFERENCES patients(id) ON DELETE CASCADE,
            stage_id UUID REFERENCES deal_stages(id) ON DELETE SET NULL,
            service_id UUID REFERENCES services(id) ON DELETE SET NULL,
            pipeline VARCHAR(100),
            contact_label VARCHAR(100),
            location VARCHAR(255),
            title VARCHAR(255),
            value NUMERIC(12, 2),
            notes TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_deals_patient ON deals(patient_id)')

    # ==========================================================================
    # Workflow definitions
    # ==========================================================================
    op.execute('''
        CREATE TABLE workflows (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(255) NOT NULL,
            trigger_type VARCHAR(50) NOT NULL,
            active BOOLEAN NOT NULL DEFAULT TRUE,
            config JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_workflows_trigger_active ON workflows(trigger_type, active)')

    op.execute('''
        CREATE TABLE workflow_actions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            workflow_id UUID NOT NULL REFERENCES workflows(id) ON DELETE CASCADE,
            action_type VARCHAR(50) NOT NULL,
            config JSONB NOT NULL DEFAULT '{}',
            sort_order INTEGER NOT NULL DEFAULT 0
        )
    ''')
    op.execute('CREATE INDEX idx_workflow_actions_order ON workflow_actions(workflow_id, sort_order)')

    # ==========================================================================
    # Enrollment audit
    # ==========================================================================
    op.execute('''
        CREATE TABLE workflow_enrollments (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            workflow_id UUID NOT NULL REFERENCES workflows(id) ON DELETE CASCADE,
            patient_id UUID NOT NULL REFERENCES patients(id) ON DELETE CASCADE,
            deal_id UUID REFERENCES deals(id) ON DELETE SET NULL,
            status VARCHAR(20) NOT NULL DEFAULT 'active',
            trigger_data JSONB,
            enrolled_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_workflow_enrollments_workflow_id ON workflow_enrollments(workflow_id)')
    op.execute('CREATE INDEX idx_workflow_enrollments_patient_id ON workflow_enrollments(patient_id)')
    op.execute('CREATE INDEX idx_workflow_enrollments_status ON workflow_enrollments(status)')

    op.execute('''
        CREATE TABLE workflow_enrollment_steps (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            enrollment_id UUID NOT NULL REFERENCES workflow_enrollments(id) ON DELETE CASCADE,
            step_type VARCHAR(20) NOT NULL,
            step_action VARCHAR(50),
            step_config JSONB,
            status VARCHAR(20) NOT NULL,
            executed_at TIMESTAMPTZ,
            result JSONB,
            error_message TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_workflow_enrollment_steps_enrollment_id ON workflow_enrollment_steps(enrollment_id)')
    op.execute('CREATE INDEX idx_workflow_enrollment_steps_status ON workflow_enrollment_steps(status)')

    # ==========================================================================
    # Workflow artifacts
    # ==========================================================================
    op.execute('''
        CREATE TABLE email_templates (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(255) NOT NULL,
            subject_template TEXT,
            body_template TEXT,
            html_content TEXT,
            is_active BOOLEAN NOT NULL DEFAULT TRUE
        )
    ''')

    op.execute('''
        CREATE TABLE emails (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            patient_id UUID REFERENCES patients(id) ON DELETE CASCADE,
            deal_id UUID REFERENCES deals(id) ON DELETE SET NULL,
            to_address VARCHAR(255) NOT NULL,
            from_address VARCHAR(255),
            subject TEXT NOT NULL DEFAULT '',
            body TEXT NOT NULL DEFAULT '',
            status VARCHAR(20) NOT NULL,
            direction VARCHAR(20) NOT NULL,
            sent_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_emails_patient ON emails(patient_id, sent_at)')
    op.execute('CREATE INDEX idx_emails_deal ON emails(deal_id)')

    op.execute('''
        CREATE TABLE whatsapp_messages (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            patient_id UUID NOT NULL REFERENCES patients(id) ON DELETE CASCADE,
            deal_id UUID REFERENCES deals(id) ON DELETE SET NULL,
            enrollment_id UUID REFERENCES workflow_enrollments(id) ON DELETE SET NULL,
            to_number VARCHAR(50) NOT NULL,
            body TEXT NOT NULL,
            direction VARCHAR(20) NOT NULL DEFAULT 'outbound',
            status VARCHAR(20) NOT NULL,
            scheduled_for TIMESTAMPTZ,
            sent_at TIMESTAMPTZ,
            message_sid VARCHAR(255),
            error_message TEXT,
            metadata JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_whatsapp_messages_patient_created ON whatsapp_messages(patient_id, created_at)')
    op.execute('''
        CREATE INDEX idx_whatsapp_messages_scheduled ON whatsapp_messages(status, scheduled_for)
        WHERE status = 'scheduled'
    ''')

    op.execute('''
        CREATE TABLE tasks (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(500) NOT NULL,
            content TEXT,
            status VARCHAR(20) DEFAULT 'not_started',
            priority VARCHAR(20) DEFAULT 'medium',
            type VARCHAR(20) DEFAULT 'todo',
            activity_date TIMESTAMPTZ,
            assigned_user_id UUID REFERENCES users(id) ON DELETE SET NULL,
            assigned_user_name VARCHAR(255),
            patient_id UUID REFERENCES patients(id) ON DELETE CASCADE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_tasks_created ON tasks(created_at)')
    op.execute('CREATE INDEX idx_tasks_assignee ON tasks(assigned_user_id, status)')

    op.execute('''
        CREATE TABLE jobs (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            job_type VARCHAR(50) NOT NULL,
            payload JSONB NOT NULL DEFAULT '{}',
            run_at TIMESTAMPTZ NOT NULL,
            status VARCHAR(20) DEFAULT 'pending',
            attempts INTEGER DEFAULT 0,
            last_error TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            completed_at TIMESTAMPTZ
        )
    ''')
    op.execute('''
        CREATE INDEX idx_jobs_pending ON jobs(status, run_at)
        WHERE status = 'pending'
    ''')


def downgrade() -> None:
    """Drop clinic and workflow tables."""
    for table in (
        'jobs',
        'tasks',
        'whatsapp_messages',
        'emails',
        'email_templates',
        'workflow_enrollment_steps',
        'workflow_enrollments',
        'workflow_actions',
        'workflows',
        'deals',
        'deal_stages',
        'services',
        'patients',
        'users',
    ):
        op.execute(f'DROP TABLE IF EXISTS {table} CASCADE')
