"""Seed database with demo data."""
from app.database import Base, SessionLocal, engine
from app.models import DocumentSettings, Job, JobActivity, User
from datetime import date, timedelta
import uuid


def seed():
    """Seed database with demo users, document prefixes and jobs."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()

    try:
        users_data = [
            {
                'id': uuid.UUID('00000000-0000-0000-0000-000000000101'),
                'username': 'admin',
                'display_name': 'Administrator',
                'role': 'ADMIN',
                'department': 'MANAGEMENT',
            },
            {
                'id': uuid.UUID('00000000-0000-0000-0000-000000000102'),
                'username': 'malee',
                'display_name': 'Malee S.',
                'role': 'OFFICER',
                'department': 'OFFICE',
            },
            {
                'id': uuid.UUID('00000000-0000-0000-0000-000000000103'),
                'username': 'somsak',
                'display_name': 'Somsak K.',
                'role': 'WORKER',
                'department': 'CAR_SERVICE',
            },
        ]

        users = []
        for user_data in users_data:
            user = User(is_active=True, token_version=0, **user_data)
            db.add(user)
            users.append(user)

        db.add(
            DocumentSettings(
                id="documents",
                quotation_prefix="QT",
                delivery_note_prefix="DN",
                tax_invoice_prefix="INV",
                receipt_prefix="RC",
                billing_note_prefix="BN",
                credit_note_prefix="CN",
                withholding_tax_prefix="WHT",
            )
        )

        today = date.today()
        jobs_data = [
            {
                'department': 'CAR_SERVICE',
                'status': 'IN_PROGRESS',
                'customer_snapshot': {'name': 'Narong P.', 'phone': '081-000-0001'},
                'description': 'Brake pads and rotor replacement',
            },
            {
                'department': 'COMMONRAIL',
                'status': 'WAITING_QUOTATION',
                'customer_snapshot': {'name': 'Siam Logistics Co.'},
                'description': 'Injector flow test, 4 units',
            },
            {
                'department': 'MECHANIC',
                'status': 'CLOSED',
                'customer_snapshot': {'name': 'Pranee T.'},
                'description': 'Gearbox overhaul',
                'closed_date': today - timedelta(days=3),
            },
            {
                'department': 'OUTSOURCE',
                'status': 'CLOSED',
                'customer_snapshot': {'name': 'Chai Transport'},
                'description': 'Turbo rebuild (outsourced)',
            },
        ]

        for job_data in jobs_data:
            job = Job(id=uuid.uuid4(), photos=[], assignee_uid=users[2].id, assignee_name=users[2].display_name, **job_data)
            db.add(job)
            db.add(
                JobActivity(
                    id=uuid.uuid4(),
                    job_id=job.id,
                    text="Job received",
                    user_id=users[1].id,
                    user_name=users[1].display_name,
                    photos=[],
                )
            )

        db.commit()
        print("✅ Database seeded successfully!")
        print("\nDemo users:")
        print("  admin (ADMIN / MANAGEMENT)")
        print("  malee (OFFICER / OFFICE)")
        print("  somsak (WORKER / CAR_SERVICE)")
        print("\nTwo CLOSED jobs are left in the live store for the archive migration.")

    except Exception as e:
        db.rollback()
        print(f"❌ Error seeding database: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed()
