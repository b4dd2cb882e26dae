"""
Top-level API router.

This router aggregates the domain-specific routers.  The paths mirror
the routes the storefront already calls (``/send-email``,
``/mpesa/...``, ``/lipana/...``, ``/chat/...``, ``/booking/...``,
``/payments/...``); the resource routes (orders, products, categories, services, bookings,
chats) are additions of this backend.  When new domains are
introduced, update this file to include their routers.
"""

from fastapi import APIRouter

from .endpoints import (
    audit,
    booking_notifications,
    bookings,
    card_payments,
    categories,
    chat_notifications,
    chats,
    email,
    email_templates,
    health,
    lipana,
    mpesa,
    orders,
    products,
    services,
    statistics,
)

router = APIRouter()

router.include_router(health.router, tags=["health"])
router.include_router(email.router, tags=["email"])
router.include_router(email_templates.router, prefix="/email-templates", tags=["email"])
router.include_router(mpesa.router, prefix="/mpesa", tags=["mpesa"])
router.include_router(lipana.router, prefix="/lipana", tags=["lipana"])
router.include_router(card_payments.router, prefix="/payments", tags=["payments"])
router.include_router(orders.router, prefix="/orders", tags=["orders"])
router.include_router(products.router, prefix="/products", tags=["products"])
router.include_router(categories.router, prefix="/categories", tags=["products"])
router.include_router(services.router, prefix="/services", tags=["services"])
router.include_router(chat_notifications.router, prefix="/chat", tags=["chats"])
router.include_router(chats.router, prefix="/chats", tags=["chats"])
router.include_router(booking_notifications.router, prefix="/booking", tags=["bookings"])
router.include_router(bookings.router, prefix="/bookings", tags=["bookings"])
router.include_router(statistics.router, prefix="/statistics", tags=["statistics"])
router.include_router(audit.router, prefix="/audit", tags=["audit"])
