from sqlalchemy import Column, ForeignKey, Integer, Text, UniqueConstraint, text

from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()
metadata = Base.metadata


class Providers(Base):
    __tablename__ = 'providers'

    business_name = Column(Text, nullable=False)
    id = Column(Integer, primary_key=True)
    slug = Column(Text, unique=True)
    timezone = Column(Text, nullable=False, server_default=text("'Europe/Paris'"))
    slot_interval_minutes = Column(Integer, nullable=False, server_default=text('15'))
    min_booking_notice_minutes = Column(Integer, nullable=False, server_default=text('0'))
    max_booking_advance_days = Column(Integer, nullable=False, server_default=text('60'))
    default_buffer_minutes = Column(Integer, nullable=False, server_default=text('0'))
    requires_confirmation = Column(Integer, nullable=False, server_default=text('0'))
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    next_available_slot = Column(Text)  # provider-local "YYYY-MM-DD HH:MM:SS", NULL = none found
    next_slot_checked_at = Column(Text)  # provider-local time of the last computation
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    locations = relationship('Locations', back_populates='provider')
    members = relationship('Members', back_populates='provider')
    services = relationship('Services', back_populates='provider')


class Locations(Base):
    __tablename__ = 'locations'

    provider_id = Column(ForeignKey('providers.id', ondelete='CASCADE'), nullable=False)
    name = Column(Text, nullable=False)
    city = Column(Text, nullable=False)
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    id = Column(Integer, primary_key=True)
    address = Column(Text)
    postal_code = Column(Text)

    provider = relationship('Providers', back_populates='locations')
    members = relationship('Members', back_populates='location')


class Members(Base):
    __tablename__ = 'members'

    provider_id = Column(ForeignKey('providers.id', ondelete='CASCADE'), nullable=False)
    location_id = Column(ForeignKey('locations.id', ondelete='CASCADE'), nullable=False)
    name = Column(Text, nullable=False)
    work_schedule = Column(Text, nullable=False, server_default=text("'{}'"))
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    is_default = Column(Integer, nullable=False, server_default=text('0'))
    sort_order = Column(Integer, nullable=False, server_default=text('0'))
    id = Column(Integer, primary_key=True)
    email = Column(Text)
    phone = Column(Text)
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))
    updated_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    provider = relationship('Providers', back_populates='members')
    location = relationship('Locations', back_populates='members')
    blocked_periods = relationship('BlockedPeriods', back_populates='member')
    availability_changes = relationship('AvailabilityChanges', back_populates='member')
    bookings = relationship('Bookings', back_populates='member')


class Services(Base):
    __tablename__ = 'services'

    provider_id = Column(ForeignKey('providers.id', ondelete='CASCADE'), nullable=False)
    name = Column(Text, nullable=False)
    duration_min = Column(Integer, nullable=False)
    buffer_min = Column(Integer, nullable=False, server_default=text('0'))
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    id = Column(Integer, primary_key=True)
    description = Column(Text)

    provider = relationship('Providers', back_populates='services')
    bookings = relationship('Bookings', back_populates='service')


class BlockedPeriods(Base):
    __tablename__ = 'blocked_periods'

    member_id = Column(ForeignKey('members.id', ondelete='CASCADE'), nullable=False)
    location_id = Column(ForeignKey('locations.id', ondelete='CASCADE'), nullable=False)
    date_start = Column(Text, nullable=False)
    date_end = Column(Text, nullable=False)
    all_day = Column(Integer, nullable=False, server_default=text('0'))
    is_recurring = Column(Integer, nullable=False, server_default=text('0'))
    id = Column(Integer, primary_key=True)
    time_start = Column(Text)
    time_end = Column(Text)
    recurring_days = Column(Text)  # JSON list of weekdays, 0 = Monday
    reason = Column(Text)
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    member = relationship('Members', back_populates='blocked_periods')


class AvailabilityChanges(Base):
    __tablename__ = 'availability_changes'
    __table_args__ = (
        UniqueConstraint('member_id', 'day_of_week', 'effective_from'),
    )

    member_id = Column(ForeignKey('members.id', ondelete='CASCADE'), nullable=False)
    day_of_week = Column(Integer, nullable=False)  # 0 = Monday
    ranges = Column(Text, nullable=False, server_default=text("'[]'"))
    is_open = Column(Integer, nullable=False, server_default=text('1'))
    effective_from = Column(Text, nullable=False)
    id = Column(Integer, primary_key=True)
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    member = relationship('Members', back_populates='availability_changes')


class Bookings(Base):
    __tablename__ = 'bookings'

    provider_id = Column(ForeignKey('providers.id', ondelete='CASCADE'), nullable=False)
    location_id = Column(ForeignKey('locations.id'), nullable=False)
    service_id = Column(ForeignKey('services.id'), nullable=False)
    member_id = Column(ForeignKey('members.id', ondelete='CASCADE'), nullable=False)
    date_start = Column(Text, nullable=False)
    date_end = Column(Text, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    buffer_minutes = Column(Integer, nullable=False, server_default=text('0'))
    status = Column(Text, nullable=False, server_default=text("'pending'"))
    client_name = Column(Text, nullable=False)
    created_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    updated_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    id = Column(Integer, primary_key=True)
    client_phone = Column(Text)
    client_email = Column(Text)
    notes = Column(Text)
    cancel_reason = Column(Text)

    member = relationship('Members', back_populates='bookings')
    service = relationship('Services', back_populates='bookings')
