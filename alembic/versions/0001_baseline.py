"""Baseline migration - users, projects, team membership and reports

Revision ID: 0001_baseline
Revises: 
Create Date: 2026-10-18

Creates the six FeeDLooP tables. Report diagnostics (console logs and
network requests) are JSONB columns on fl_reports, not separate tables.
"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create user, project, membership, invitation, report and attachment tables."""

    op.execute('CREATE EXTENSION IF NOT EXISTS pgcrypto')  # For gen_random_uuid()

    # ==========================================================================
    # Users
    # ==========================================================================
    op.execute('''
        CREATE TABLE fl_users (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            email VARCHAR(255) UNIQUE NOT NULL,
            password_hash VARCHAR(255) NOT NULL,
            first_name VARCHAR(50) NOT NULL,
            last_name VARCHAR(50) NOT NULL,
            company VARCHAR(100),
            avatar_url VARCHAR(500),
            email_verified BOOLEAN NOT NULL DEFAULT false,
            token_version INTEGER NOT NULL DEFAULT 1,
            last_login_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')

    # ==========================================================================
    # Projects
    # ==========================================================================
    op.execute('''
        CREATE TABLE fl_projects (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(100) NOT NULL,
            owner_id UUID NOT NULL REFERENCES fl_users(id) ON DELETE CASCADE,
            integration_key VARCHAR(64) UNIQUE NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX ix_fl_projects_owner_id ON fl_projects(owner_id)')

    # ==========================================================================
    # Team membership
    # ==========================================================================
    op.execute('''
        CREATE TABLE fl_project_members (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            project_id UUID NOT NULL REFERENCES fl_projects(id) ON DELETE CASCADE,
            user_id UUID NOT NULL REFERENCES fl_users(id) ON DELETE CASCADE,
            role VARCHAR(20) NOT NULL DEFAULT 'member',
            can_invite BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_project_member UNIQUE (project_id, user_id)
        )
    ''')
    op.execute('CREATE INDEX ix_fl_project_members_project_id ON fl_project_members(project_id)')
    op.execute('CREATE INDEX ix_fl_project_members_user_id ON fl_project_members(user_id)')

    op.execute('''
        CREATE TABLE fl_pending_invitations (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            project_id UUID NOT NULL REFERENCES fl_projects(id) ON DELETE CASCADE,
            email VARCHAR(255) NOT NULL,
            role VARCHAR(20) NOT NULL DEFAULT 'member',
            can_invite BOOLEAN NOT NULL DEFAULT false,
            invited_by UUID REFERENCES fl_users(id) ON DELETE SET NULL,
            token VARCHAR(64) UNIQUE NOT NULL,
            expires_at TIMESTAMPTZ NOT NULL,
            accepted_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX ix_fl_pending_invitations_project_id ON fl_pending_invitations(project_id)')
    op.execute('CREATE INDEX idx_pending_invitations_email ON fl_pending_invitations(email)')

    # ==========================================================================
    # Reports
    # ==========================================================================
    op.execute('''
        CREATE TABLE fl_reports (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            project_id UUID NOT NULL REFERENCES fl_projects(id) ON DELETE CASCADE,
            title VARCHAR(200) NOT NULL,
            description TEXT NOT NULL,
            type VARCHAR(20) NOT NULL,
            priority VARCHAR(20),
            status VARCHAR(20) NOT NULL DEFAULT 'new',
            reporter_name VARCHAR(100),
            reporter_email VARCHAR(255),
            page_url TEXT,
            browser_info JSONB,
            console_logs JSONB,
            network_requests JSONB,
            created_by UUID REFERENCES fl_users(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_reports_project_created ON fl_reports(project_id, created_at)')

    op.execute('''
        CREATE TABLE fl_attachments (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            report_id UUID NOT NULL REFERENCES fl_reports(id) ON DELETE CASCADE,
            filename VARCHAR(255) NOT NULL,
            file_size INTEGER NOT NULL,
            mime_type VARCHAR(100) NOT NULL,
            storage_key VARCHAR(500) NOT NULL,
            file_url TEXT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX ix_fl_attachments_report_id ON fl_attachments(report_id)')


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    op.execute('DROP TABLE IF EXISTS fl_attachments')
    op.execute('DROP TABLE IF EXISTS fl_reports')
    op.execute('DROP TABLE IF EXISTS fl_pending_invitations')
    op.execute('DROP TABLE IF EXISTS fl_project_members')
    op.execute('DROP TABLE IF EXISTS fl_projects')
    op.execute('DROP TABLE IF EXISTS fl_users')
