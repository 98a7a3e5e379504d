"""Initial database schema

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ENUMS = {
    'userrole': ('user', 'startup_owner', 'investor', 'agency', 'freelancer', 'jobseeker', 'maker', 'admin'),
    'productstatus': ('Draft', 'Published', 'Archived'),
    'viewsource': (
        'direct', 'search', 'social', 'email', 'referral', 'advertisement',
        'recommendation_feed', 'recommendation_similar', 'recommendation_trending',
        'internal_navigation', 'unknown',
    ),
    'devicetype': ('desktop', 'mobile', 'tablet', 'other'),
    'jobstatus': ('Draft', 'Published', 'Closed', 'Filled'),
    'jobtype': ('Full-time', 'Part-time', 'Contract', 'Freelance', 'Internship'),
    'locationtype': ('Remote', 'On-site', 'Hybrid', 'Flexible'),
    'experiencelevel': ('Entry Level', 'Junior', 'Mid-Level', 'Senior', 'Executive'),
    'applicationstatus': ('Pending', 'Reviewed', 'Shortlisted', 'Rejected', 'Hired', 'Withdrawn'),
    'searchtype': ('all', 'products', 'jobs', 'users'),
}


def enum(name: str) -> postgresql.ENUM:
    # Types are created once up front; columns only reference them
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    # Users table
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('username', sa.String(30), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=True),
        sa.Column('first_name', sa.String(100), nullable=True),
        sa.Column('last_name', sa.String(100), nullable=True),
        sa.Column('about', sa.Text(), nullable=True),
        sa.Column('bio', sa.String(500), nullable=True),
        sa.Column('headline', sa.String(255), nullable=True),
        sa.Column('country', sa.String(100), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('profile_picture_url', sa.String(1000), nullable=True),
        sa.Column('role', enum('userrole'), nullable=False, server_default='user'),
        sa.Column('secondary_roles', sa.JSON(), nullable=True),
        sa.Column('can_upload_products', sa.Boolean(), server_default=sa.false()),
        sa.Column('can_invest', sa.Boolean(), server_default=sa.false()),
        sa.Column('can_offer_services', sa.Boolean(), server_default=sa.false()),
        sa.Column('can_apply_to_jobs', sa.Boolean(), server_default=sa.false()),
        sa.Column('can_post_jobs', sa.Boolean(), server_default=sa.false()),
        sa.Column('can_showcase_projects', sa.Boolean(), server_default=sa.false()),
        sa.Column('is_email_verified', sa.Boolean(), server_default=sa.false()),
        sa.Column('is_phone_verified', sa.Boolean(), server_default=sa.false()),
        sa.Column('is_profile_completed', sa.Boolean(), server_default=sa.false()),
        sa.Column('last_email_verification_request', sa.DateTime(timezone=True), nullable=True),
        sa.Column('login_attempts', sa.Integer(), server_default='0'),
        sa.Column('lock_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('password_reset_token', sa.String(1000), nullable=True),
        sa.Column('password_reset_expires', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_password_reset_request', sa.DateTime(timezone=True), nullable=True),
        sa.Column('password_changed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_otp_request', sa.DateTime(timezone=True), nullable=True),
        sa.Column('otp_failed_attempts', sa.Integer(), server_default='0'),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        *timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_phone', 'users', ['phone'], unique=True)
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    # Role details table
    op.create_table(
        'role_details',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('role', enum('userrole'), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        *timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('user_id', 'role', name='uq_role_details_user_role')
    )

    # Refresh tokens table
    op.create_table(
        'refresh_tokens',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token', sa.String(1000), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_by_ip', sa.String(64), nullable=True),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_by_ip', sa.String(64), nullable=True),
        sa.Column('replaced_by_token', sa.String(1000), nullable=True),
        *timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE')
    )
    op.create_index('ix_refresh_tokens_user_id', 'refresh_tokens', ['user_id'])
    op.create_index('ix_refresh_tokens_token', 'refresh_tokens', ['token'], unique=True)

    # Products table
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('slug', sa.String(150), nullable=False),
        sa.Column('tagline', sa.String(255), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('maker_id', sa.Integer(), nullable=False),
        sa.Column('status', enum('productstatus'), nullable=False, server_default='Draft'),
        sa.Column('featured', sa.Boolean(), server_default=sa.false()),
        sa.Column('view_count', sa.Integer(), server_default='0'),
        sa.Column('unique_view_count', sa.Integer(), server_default='0'),
        sa.Column('view_history', sa.JSON(), nullable=True),
        sa.Column('views_synced_at', sa.DateTime(timezone=True), nullable=True),
        *timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['maker_id'], ['users.id'], ondelete='CASCADE')
    )
    op.create_index('ix_products_name', 'products', ['name'])
    op.create_index('ix_products_slug', 'products', ['slug'], unique=True)
    op.create_index('ix_products_category', 'products', ['category'])
    op.create_index('ix_products_maker_id', 'products', ['maker_id'])
    op.create_index('ix_products_status_featured', 'products', ['status', 'featured'])

    # Views table
    op.create_table(
        'views',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('client_id', sa.String(100), nullable=True),
        sa.Column('session_id', sa.String(100), nullable=True),
        sa.Column('source', enum('viewsource'), nullable=False, server_default='direct'),
        sa.Column('referrer', sa.String(1000), nullable=True),
        sa.Column('user_agent', sa.String(1000), nullable=True),
        sa.Column('ip', sa.String(64), nullable=True),
        sa.Column('is_bot', sa.Boolean(), server_default=sa.false()),
        sa.Column('country', sa.String(64), nullable=True),
        sa.Column('region', sa.String(100), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('device', enum('devicetype'), nullable=True),
        sa.Column('os', sa.String(64), nullable=True),
        sa.Column('browser', sa.String(64), nullable=True),
        sa.Column('view_duration', sa.Integer(), nullable=True),
        sa.Column('scroll_depth', sa.Integer(), nullable=True),
        sa.Column('time_to_first_interaction', sa.Integer(), nullable=True),
        sa.Column('exit_page', sa.String(1000), nullable=True),
        *timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL')
    )
    op.create_index('ix_views_client_id', 'views', ['client_id'])
    op.create_index('ix_views_is_bot', 'views', ['is_bot'])
    op.create_index('ix_views_product_created', 'views', ['product_id', 'created_at'])
    op.create_index('ix_views_user_created', 'views', ['user_id', 'created_at'])
    op.create_index('ix_views_product_user', 'views', ['product_id', 'user_id'])

    # Jobs table
    op.create_table(
        'jobs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('title', sa.String(100), nullable=False),
        sa.Column('slug', sa.String(150), nullable=False),
        sa.Column('company', sa.JSON(), nullable=True),
        sa.Column('location', sa.String(255), nullable=True),
        sa.Column('location_type', enum('locationtype'), nullable=False, server_default='On-site'),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('requirements', sa.JSON(), nullable=True),
        sa.Column('responsibilities', sa.JSON(), nullable=True),
        sa.Column('benefits', sa.JSON(), nullable=True),
        sa.Column('skills', sa.JSON(), nullable=True),
        sa.Column('job_type', enum('jobtype'), nullable=False, server_default='Full-time'),
        sa.Column('experience_level', enum('experiencelevel'), nullable=False, server_default='Mid-Level'),
        sa.Column('salary_min', sa.Integer(), nullable=True),
        sa.Column('salary_max', sa.Integer(), nullable=True),
        sa.Column('salary_currency', sa.String(3), server_default='USD'),
        sa.Column('salary_period', sa.String(20), server_default='yearly'),
        sa.Column('salary_visible', sa.Boolean(), server_default=sa.true()),
        sa.Column('application_url', sa.String(1000), nullable=True),
        sa.Column('application_email', sa.String(255), nullable=True),
        sa.Column('status', enum('jobstatus'), nullable=False, server_default='Published'),
        sa.Column('featured', sa.Boolean(), server_default=sa.false()),
        sa.Column('views', sa.Integer(), server_default='0'),
        sa.Column('applications_count', sa.Integer(), server_default='0'),
        sa.Column('poster_id', sa.Integer(), nullable=False),
        sa.Column('deadline', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        *timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['poster_id'], ['users.id'], ondelete='CASCADE')
    )
    op.create_index('ix_jobs_title', 'jobs', ['title'])
    op.create_index('ix_jobs_slug', 'jobs', ['slug'], unique=True)
    op.create_index('ix_jobs_location', 'jobs', ['location'])
    op.create_index('ix_jobs_status', 'jobs', ['status'])
    op.create_index('ix_jobs_poster_id', 'jobs', ['poster_id'])
    op.create_index('ix_jobs_status_expires', 'jobs', ['status', 'expires_at'])
    op.create_index('ix_jobs_search', 'jobs', ['title', 'location'])

    # Job applications table
    op.create_table(
        'job_applications',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('job_id', sa.Integer(), nullable=False),
        sa.Column('applicant_id', sa.Integer(), nullable=False),
        sa.Column('resume_url', sa.String(1000), nullable=True),
        sa.Column('cover_letter', sa.Text(), nullable=True),
        sa.Column('answers', sa.JSON(), nullable=True),
        sa.Column('status', enum('applicationstatus'), nullable=False, server_default='Pending'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('rating', sa.Integer(), nullable=True),
        *timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['applicant_id'], ['users.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('job_id', 'applicant_id', name='uq_application_job_applicant')
    )
    op.create_index('ix_job_applications_job_id', 'job_applications', ['job_id'])
    op.create_index('ix_job_applications_applicant_id', 'job_applications', ['applicant_id'])

    # Search history table
    op.create_table(
        'search_history',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('query', sa.String(255), nullable=False),
        sa.Column('type', enum('searchtype'), nullable=False, server_default='all'),
        sa.Column('count', sa.Integer(), server_default='1'),
        sa.Column('last_searched_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        *timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('user_id', 'query', 'type', name='uq_search_history_user_query_type')
    )
    op.create_index('ix_search_history_user_id', 'search_history', ['user_id'])
    op.create_index('ix_search_history_last_searched_at', 'search_history', ['last_searched_at'])


def downgrade() -> None:
    op.drop_table('search_history')
    op.drop_table('job_applications')
    op.drop_table('jobs')
    op.drop_table('views')
    op.drop_table('products')
    op.drop_table('refresh_tokens')
    op.drop_table('role_details')
    op.drop_table('users')

    # Drop enums
    for name in reversed(list(ENUMS)):
        op.execute(f'DROP TYPE IF EXISTS {name}')
