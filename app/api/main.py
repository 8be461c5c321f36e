"""
API router aggregation

Every route module defines its own prefix; main.py mounts this router
under settings.API_V1_STR.
"""
from fastapi import APIRouter

from app.api.routes import (
    admin,
    auth,
    categories,
    chat,
    comments,
    companions,
    config,
    gpu,
    images,
    payments,
    plans,
    subscription,
    usage,
    user,
    utils,
    videos,
    votes,
    webhooks,
)

api_router = APIRouter()

api_router.include_router(auth.router)  # /auth/*
api_router.include_router(user.router)  # /user/*
api_router.include_router(admin.router)  # /admin/*
api_router.include_router(plans.router)  # /plans/*
api_router.include_router(subscription.router)  # /subscription/*
api_router.include_router(usage.router)  # /usage
api_router.include_router(payments.router)  # /payments/*
api_router.include_router(images.router)  # /images/*
api_router.include_router(videos.router)  # /videos/*
api_router.include_router(votes.router)  # /votes/*
api_router.include_router(comments.router)  # /comments/*
api_router.include_router(categories.router)  # /categories/*
api_router.include_router(companions.router)  # /companions/*
api_router.include_router(chat.router)  # /chat/*
api_router.include_router(gpu.router)  # /gpu/*
api_router.include_router(webhooks.router)  # /webhooks/*
api_router.include_router(config.router)  # /config
api_router.include_router(utils.router)  # /utils/*
