"""
SQLAlchemy models for the clinic database
Only the tables the recommendation service reads are mapped
"""
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from vetclinic.core.database import Base


class User(Base):
    """
    User model - login account behind a customer
    """
    __tablename__ = "Users"

    user_id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), unique=True, nullable=False)
    email = Column(String(255), unique=True)
    phone_number = Column(String(20))
    role = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    customers = relationship("Customer", back_populates="user")


class Customer(Base):
    """
    Customer model - pet owner
    """
    __tablename__ = "Customer"

    customer_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("Users.user_id"), nullable=False)
    customer_name = Column(String(255), nullable=False)
    gender = Column(Integer)
    address = Column(String(500))

    # Relationships
    user = relationship("User", back_populates="customers")
    pets = relationship("Pet", back_populates="customer")


class Pet(Base):
    """
    Pet model - appointments are booked per pet
    """
    __tablename__ = "Pet"

    pet_id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("Customer.customer_id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    species = Column(String(50))
    breed = Column(String(100))
    birth_date = Column(Date)

    # Relationships
    customer = relationship("Customer", back_populates="pets")
    appointments = relationship("Appointment", back_populates="pet")


class Service(Base):
    """
    Service model - bookable clinic service
    """
    __tablename__ = "Service"

    service_id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    duration = Column(Integer)
    category = Column(String(100))
    is_active = Column(Boolean, default=True, index=True)

    # Relationships
    appointments = relationship("Appointment", back_populates="service")


class Appointment(Base):
    """
    Appointment model - status is one of the APPOINTMENT_* constants
    """
    __tablename__ = "Appointment"

    appointment_id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("Customer.customer_id"), nullable=False)
    pet_id = Column(Integer, ForeignKey("Pet.pet_id"), nullable=False, index=True)
    doctor_id = Column(Integer)
    service_id = Column(Integer, ForeignKey("Service.service_id"), nullable=False, index=True)
    appointment_date = Column(Date, nullable=False, index=True)
    appointment_time = Column(String(10), nullable=False)
    weight = Column(Float)
    age = Column(Integer)
    is_new_pet = Column(Boolean, default=False)
    status = Column(Integer, default=0, index=True)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    pet = relationship("Pet", back_populates="appointments")
    service = relationship("Service", back_populates="appointments")
