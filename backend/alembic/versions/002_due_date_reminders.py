"""Add due_date_reminders to notification_preferences

Revision ID: 002_due_date_reminders
Revises: 001_notification_core
Create Date: 2026-10-18 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '002_due_date_reminders'
down_revision = '001_notification_core'
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Existing rows get the defaults: 1 day before at 09:00, on the day at 08:00
    op.execute("""
        DO $$
        BEGIN
            IF NOT EXISTS (SELECT 1 FROM information_schema.columns WHERE table_name='notification_preferences' AND column_name='due_date_reminders') THEN
                ALTER TABLE notification_preferences ADD COLUMN due_date_reminders JSON NOT NULL
                    DEFAULT '[{"daysBefore": 1, "time": "09:00"}, {"daysBefore": 0, "time": "08:00"}]'::json;
            END IF;
        END $$;
    """)


def downgrade() -> None:
    op.drop_column('notification_preferences', 'due_date_reminders')
