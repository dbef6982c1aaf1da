"""create provincial grid tables

Revision ID: 3f1c9a2b7d40
Revises:
Create Date: 2026-10-12 09:14:22.118403

"""
import uuid
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3f1c9a2b7d40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('municipalities',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('uuid', sa.Uuid(), nullable=False),
    sa.Column('name', sa.String(length=100), nullable=False),
    sa.Column('code', sa.String(length=20), nullable=False),
    sa.Column('address', sa.String(), nullable=True),
    sa.Column('status', sa.String(length=20), nullable=False, comment='ACTIVE | SUSPENDED | INACTIVE'),
    sa.Column('is_active', sa.Boolean(), nullable=False),
    sa.Column('allocated_budget', sa.Numeric(precision=15, scale=2), nullable=False, comment='Annual assistance budget'),
    sa.Column('used_budget', sa.Numeric(precision=15, scale=2), nullable=False, comment='Total disbursed'),
    *_timestamps(),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('uuid'),
    sa.UniqueConstraint('name'),
    sa.UniqueConstraint('code'),
    )
    op.create_index('ix_municipalities_status_active', 'municipalities', ['status', 'is_active'])

    op.create_table('beneficiaries',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('uuid', sa.Uuid(), nullable=False),
    sa.Column('home_municipality_id', sa.Integer(), nullable=False),
    sa.Column('first_name', sa.String(length=50), nullable=False),
    sa.Column('last_name', sa.String(length=50), nullable=False),
    sa.Column('last_name_phonetic', sa.String(length=10), nullable=True, comment='SOUNDEX of last_name'),
    sa.Column('middle_name', sa.String(length=50), nullable=True),
    sa.Column('suffix', sa.String(length=10), nullable=True),
    sa.Column('birthdate', sa.Date(), nullable=False),
    sa.Column('gender', sa.String(length=10), nullable=False),
    sa.Column('contact_number', sa.String(length=20), nullable=True),
    sa.Column('address', sa.Text(), nullable=True),
    sa.Column('barangay', sa.String(length=100), nullable=True),
    sa.Column('id_type', sa.String(length=50), nullable=True),
    sa.Column('id_number', sa.String(length=100), nullable=True),
    sa.Column('is_active', sa.Boolean(), nullable=False),
    sa.Column('created_by', sa.Integer(), nullable=True),
    sa.Column('updated_by', sa.Integer(), nullable=True),
    *_timestamps(),
    sa.ForeignKeyConstraint(['home_municipality_id'], ['municipalities.id'], ondelete='RESTRICT'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('uuid'),
    )
    op.create_index('ix_beneficiaries_last_name_birthdate', 'beneficiaries', ['last_name', 'birthdate'])
    op.create_index('ix_beneficiaries_phonetic', 'beneficiaries', ['last_name_phonetic'])
    op.create_index('ix_beneficiaries_first_last', 'beneficiaries', ['first_name', 'last_name'])
    op.create_index('ix_beneficiaries_home_active', 'beneficiaries', ['home_municipality_id', 'is_active'])
    op.create_index(
        'unique_beneficiary',
        'beneficiaries',
        ['first_name', 'last_name', 'birthdate', 'home_municipality_id'],
        unique=True,
        postgresql_where=sa.text('deleted_at IS NULL AND is_active'),
        sqlite_where=sa.text('deleted_at IS NULL AND is_active'),
    )

    op.create_table('claims',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('uuid', sa.Uuid(), nullable=False),
    sa.Column('beneficiary_id', sa.Integer(), nullable=False),
    sa.Column('municipality_id', sa.Integer(), nullable=False, comment='Processing municipality'),
    sa.Column('assistance_type', sa.String(length=30), nullable=False),
    sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
    sa.Column('purpose', sa.Text(), nullable=True),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.Column('status', sa.String(length=30), nullable=False),
    sa.Column('processed_by_user_id', sa.Integer(), nullable=True),
    sa.Column('under_review_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('disbursed_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('rejection_reason', sa.Text(), nullable=True),
    sa.Column('is_flagged', sa.Boolean(), nullable=False),
    sa.Column('flag_reason', sa.Text(), nullable=True),
    sa.Column('risk_assessment', sa.JSON(), nullable=True, comment='Verdict snapshot taken at scoring time'),
    *_timestamps(),
    sa.CheckConstraint('amount > 0', name='ck_claims_amount_positive'),
    sa.ForeignKeyConstraint(['beneficiary_id'], ['beneficiaries.id'], ondelete='RESTRICT'),
    sa.ForeignKeyConstraint(['municipality_id'], ['municipalities.id'], ondelete='RESTRICT'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('uuid'),
    )
    op.create_index('ix_claims_beneficiary_created_status', 'claims', ['beneficiary_id', 'created_at', 'status'])
    op.create_index('ix_claims_municipality_status_created', 'claims', ['municipality_id', 'status', 'created_at'])
    op.create_index('ix_claims_status_created', 'claims', ['status', 'created_at'])
    op.create_index('ix_claims_flagged_status', 'claims', ['is_flagged', 'status'])
    op.create_index('ix_claims_type_created', 'claims', ['assistance_type', 'created_at'])

    op.create_table('claim_notes',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('uuid', sa.Uuid(), nullable=False),
    sa.Column('claim_id', sa.Integer(), nullable=False),
    sa.Column('user_id', sa.Integer(), nullable=False),
    sa.Column('note', sa.Text(), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    sa.ForeignKeyConstraint(['claim_id'], ['claims.id'], ondelete='RESTRICT'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('uuid'),
    )
    op.create_index('ix_claim_notes_claim_id', 'claim_notes', ['claim_id'])

    op.create_table('verified_distinct_pairs',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('uuid', sa.Uuid(), nullable=False),
    sa.Column('beneficiary_a_id', sa.Integer(), nullable=False, comment='Smaller beneficiary ID of the pair'),
    sa.Column('beneficiary_b_id', sa.Integer(), nullable=False, comment='Larger beneficiary ID of the pair'),
    sa.Column('verification_status', sa.String(length=30), nullable=False),
    sa.Column('similarity_score', sa.Integer(), nullable=True),
    sa.Column('levenshtein_distance', sa.Integer(), nullable=True),
    sa.Column('verification_reason', sa.Text(), nullable=False),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.Column('verified_by_user_id', sa.Integer(), nullable=False),
    sa.Column('verified_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('revoked_by_user_id', sa.Integer(), nullable=True),
    sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('revocation_reason', sa.Text(), nullable=True),
    *_timestamps(),
    sa.CheckConstraint('beneficiary_a_id < beneficiary_b_id', name='ck_vdp_normalized_order'),
    sa.ForeignKeyConstraint(['beneficiary_a_id'], ['beneficiaries.id'], ondelete='RESTRICT'),
    sa.ForeignKeyConstraint(['beneficiary_b_id'], ['beneficiaries.id'], ondelete='RESTRICT'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('uuid'),
    )
    op.create_index('vdp_pair_ab', 'verified_distinct_pairs', ['beneficiary_a_id', 'beneficiary_b_id', 'verification_status'])
    op.create_index('vdp_pair_ba', 'verified_distinct_pairs', ['beneficiary_b_id', 'beneficiary_a_id', 'verification_status'])
    op.create_index(
        'vdp_pair_unique_standing',
        'verified_distinct_pairs',
        ['beneficiary_a_id', 'beneficiary_b_id'],
        unique=True,
        postgresql_where=sa.text("verification_status <> 'REVOKED' AND deleted_at IS NULL"),
    )
    op.create_index('vdp_verified_by_at', 'verified_distinct_pairs', ['verified_by_user_id', 'verified_at'])
    op.create_index('vdp_status_created', 'verified_distinct_pairs', ['verification_status', 'created_at'])

    settings_table = op.create_table('system_settings',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('uuid', sa.Uuid(), nullable=False),
    sa.Column('key', sa.String(length=100), nullable=False),
    sa.Column('value', sa.Text(), nullable=False),
    sa.Column('data_type', sa.String(length=20), nullable=False, comment='integer | float | boolean | json | string'),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('min_value', sa.Numeric(precision=15, scale=4), nullable=True),
    sa.Column('max_value', sa.Numeric(precision=15, scale=4), nullable=True),
    sa.Column('category', sa.String(length=50), nullable=False),
    sa.Column('is_editable', sa.Boolean(), nullable=False),
    sa.Column('created_by', sa.Integer(), nullable=True),
    sa.Column('updated_by', sa.Integer(), nullable=True),
    *_timestamps(),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('uuid'),
    sa.UniqueConstraint('key'),
    )

    op.create_table('activity_log',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('log_name', sa.String(length=50), nullable=False),
    sa.Column('action', sa.String(length=100), nullable=False),
    sa.Column('subject_type', sa.String(length=50), nullable=True),
    sa.Column('subject_id', sa.Integer(), nullable=True),
    sa.Column('causer_id', sa.Integer(), nullable=True),
    sa.Column('properties', sa.JSON(), nullable=True, comment='before/after values'),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_activity_log_log_name', 'activity_log', ['log_name'])
    op.create_index('ix_activity_log_subject', 'activity_log', ['subject_type', 'subject_id'])

    # Fraud detection thresholds, editable at runtime
    op.bulk_insert(settings_table, [
        {'uuid': uuid.uuid4(), 'key': 'RISK_THRESHOLD_DAYS', 'value': '90', 'data_type': 'integer',
         'description': 'Days of claim history inspected during fraud scoring',
         'min_value': 1, 'max_value': 365, 'category': 'fraud_detection', 'is_editable': True},
        {'uuid': uuid.uuid4(), 'key': 'SAME_TYPE_THRESHOLD_DAYS', 'value': '30', 'data_type': 'integer',
         'description': 'Window in days for same-category double-dipping',
         'min_value': 1, 'max_value': 365, 'category': 'fraud_detection', 'is_editable': True},
        {'uuid': uuid.uuid4(), 'key': 'HIGH_FREQUENCY_THRESHOLD', 'value': '3', 'data_type': 'integer',
         'description': 'Claims within the lookback window that count as high frequency',
         'min_value': 1, 'max_value': 50, 'category': 'fraud_detection', 'is_editable': True},
        {'uuid': uuid.uuid4(), 'key': 'LEVENSHTEIN_DISTANCE_THRESHOLD', 'value': '3', 'data_type': 'integer',
         'description': 'Name edit distance below which a beneficiary is a candidate match',
         'min_value': 0, 'max_value': 10, 'category': 'fraud_detection', 'is_editable': True},
        {'uuid': uuid.uuid4(), 'key': 'DUPLICATE_REPORT_DISTANCE_THRESHOLD', 'value': '5', 'data_type': 'integer',
         'description': 'Name edit distance below which the duplicate report lists a match',
         'min_value': 0, 'max_value': 10, 'category': 'fraud_detection', 'is_editable': True},
    ])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_activity_log_subject', table_name='activity_log')
    op.drop_index('ix_activity_log_log_name', table_name='activity_log')
    op.drop_table('activity_log')
    op.drop_table('system_settings')
    op.drop_index('vdp_status_created', table_name='verified_distinct_pairs')
    op.drop_index('vdp_verified_by_at', table_name='verified_distinct_pairs')
    op.drop_index('vdp_pair_unique_standing', table_name='verified_distinct_pairs')
    op.drop_index('vdp_pair_ba', table_name='verified_distinct_pairs')
    op.drop_index('vdp_pair_ab', table_name='verified_distinct_pairs')
    op.drop_table('verified_distinct_pairs')
    op.drop_index('ix_claim_notes_claim_id', table_name='claim_notes')
    op.drop_table('claim_notes')
    op.drop_index('ix_claims_type_created', table_name='claims')
    op.drop_index('ix_claims_flagged_status', table_name='claims')
    op.drop_index('ix_claims_status_created', table_name='claims')
    op.drop_index('ix_claims_municipality_status_created', table_name='claims')
    op.drop_index('ix_claims_beneficiary_created_status', table_name='claims')
    op.drop_table('claims')
    op.drop_index('unique_beneficiary', table_name='beneficiaries')
    op.drop_index('ix_beneficiaries_home_active', table_name='beneficiaries')
    op.drop_index('ix_beneficiaries_first_last', table_name='beneficiaries')
    op.drop_index('ix_beneficiaries_phonetic', table_name='beneficiaries')
    op.drop_index('ix_beneficiaries_last_name_birthdate', table_name='beneficiaries')
    op.drop_table('beneficiaries')
    op.drop_index('ix_municipalities_status_active', table_name='municipalities')
    op.drop_table('municipalities')
