"""Event queue triggers on the product tables.

Payments, maintenance requests, tenancies and inspections enqueue domain
events into agent_event_queue. Requires the product schema to be present.

Revision ID: 002
Revises: 001
Create Date: 2026-10-01
"""
from typing import Sequence, Union

from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# (trigger function, table, timing, body)
_TRIGGERS = (
    (
        "trigger_agent_payment_completed",
        "payments",
        "AFTER INSERT OR UPDATE",
        """
        IF NEW.status = 'completed' AND (TG_OP = 'INSERT' OR OLD.status IS DISTINCT FROM 'completed') THEN
            INSERT INTO agent_event_queue (event_type, priority, payload, user_id, property_id)
            SELECT 'payment_completed', 'instant',
                   jsonb_build_object('payment_id', NEW.id, 'tenancy_id', NEW.tenancy_id,
                                      'amount', NEW.amount, 'payment_type', NEW.payment_type,
                                      'paid_at', NEW.paid_at),
                   p.owner_id, t.property_id
            FROM tenancies t JOIN properties p ON p.id = t.property_id
            WHERE t.id = NEW.tenancy_id;
        END IF;
        """,
    ),
    (
        "trigger_agent_payment_failed",
        "payments",
        "AFTER UPDATE",
        """
        IF NEW.status = 'failed' AND OLD.status IS DISTINCT FROM 'failed' THEN
            INSERT INTO agent_event_queue (event_type, priority, payload, user_id, property_id)
            SELECT 'payment_failed', 'instant',
                   jsonb_build_object('payment_id', NEW.id, 'tenancy_id', NEW.tenancy_id,
                                      'amount', NEW.amount, 'payment_type', NEW.payment_type,
                                      'failure_reason', COALESCE(NEW.notes, 'unknown')),
                   p.owner_id, t.property_id
            FROM tenancies t JOIN properties p ON p.id = t.property_id
            WHERE t.id = NEW.tenancy_id;
        END IF;
        """,
    ),
    (
        "trigger_agent_maintenance_submitted",
        "maintenance_requests",
        "AFTER INSERT",
        """
        INSERT INTO agent_event_queue (event_type, priority, payload, user_id, property_id)
        SELECT CASE WHEN NEW.urgency = 'emergency' THEN 'maintenance_submitted_emergency'
                    ELSE 'maintenance_submitted' END,
               CASE WHEN NEW.urgency = 'emergency' THEN 'instant' ELSE 'normal' END,
               jsonb_build_object('request_id', NEW.id, 'property_id', NEW.property_id,
                                  'tenancy_id', NEW.tenancy_id, 'tenant_id', NEW.tenant_id,
                                  'title', NEW.title, 'urgency', NEW.urgency,
                                  'category', NEW.category, 'description', NEW.description),
               p.owner_id, NEW.property_id
        FROM properties p WHERE p.id = NEW.property_id;
        """,
    ),
    (
        "trigger_agent_tenancy_created",
        "tenancies",
        "AFTER INSERT",
        """
        INSERT INTO agent_event_queue (event_type, priority, payload, user_id, property_id)
        SELECT 'tenancy_created', 'normal',
               jsonb_build_object('tenancy_id', NEW.id, 'property_id', NEW.property_id,
                                  'lease_start_date', NEW.lease_start_date,
                                  'lease_end_date', NEW.lease_end_date,
                                  'rent_amount', NEW.rent_amount,
                                  'rent_frequency', NEW.rent_frequency, 'status', NEW.status),
               p.owner_id, NEW.property_id
        FROM properties p WHERE p.id = NEW.property_id;
        """,
    ),
    (
        "trigger_agent_inspection_finalized",
        "inspections",
        "AFTER INSERT OR UPDATE",
        """
        IF NEW.status = 'finalized' AND (TG_OP = 'INSERT' OR OLD.status IS DISTINCT FROM 'finalized') THEN
            INSERT INTO agent_event_queue (event_type, priority, payload, user_id, property_id)
            SELECT 'inspection_finalized', 'normal',
                   jsonb_build_object('inspection_id', NEW.id, 'property_id', NEW.property_id,
                                      'tenancy_id', NEW.tenancy_id,
                                      'inspection_type', NEW.inspection_type,
                                      'overall_condition', NEW.overall_condition,
                                      'completed_at', NEW.completed_at),
                   p.owner_id, NEW.property_id
            FROM properties p WHERE p.id = NEW.property_id;
        END IF;
        """,
    ),
)


def upgrade() -> None:
    for function, table, timing, body in _TRIGGERS:
        op.execute(f"""
            CREATE OR REPLACE FUNCTION {function}()
            RETURNS TRIGGER AS $$
            BEGIN
                {body}
                RETURN NEW;
            END;
            $$ LANGUAGE plpgsql
        """)
        op.execute(f"DROP TRIGGER IF EXISTS trg_{function[len('trigger_'):]} ON {table}")
        op.execute(
            f"CREATE TRIGGER trg_{function[len('trigger_'):]} {timing} ON {table} "
            f"FOR EACH ROW EXECUTE FUNCTION {function}()"
        )


def downgrade() -> None:
    for function, table, _timing, _body in reversed(_TRIGGERS):
        op.execute(f"DROP TRIGGER IF EXISTS trg_{function[len('trigger_'):]} ON {table}")
        op.execute(f"DROP FUNCTION IF EXISTS {function}()")
