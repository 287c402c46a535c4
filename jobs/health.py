"""
Health check server for the reset scheduler.

Provides HTTP endpoint for health checks and monitoring.
"""

import asyncio

from aiohttp import web
from loguru import logger

from jobs.tasks.referral_reset import ResetScheduler


SCHEDULER_KEY = web.AppKey("reset_scheduler", ResetScheduler)


async def health_handler(request: web.Request) -> web.Response:
    """
    Health check endpoint.

    Returns:
        JSON response with scheduler status
    """
    reset_scheduler = request.app.get(SCHEDULER_KEY)
    if reset_scheduler is None:
        return web.json_response(
            {
                "status": "unhealthy",
                "error": "Scheduler not initialized",
            },
            status=503,
        )

    try:
        scheduler = reset_scheduler.scheduler
        is_running = scheduler.running
        jobs = scheduler.get_jobs()
        job_info = [
            {
                "id": job.id,
                "name": job.name,
                "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
            }
            for job in jobs
        ]

        return web.json_response(
            {
                "status": "healthy",
                "scheduler_running": is_running,
                "monitoring": reset_scheduler.is_monitoring,
                "jobs_count": len(jobs),
                "jobs": job_info,
            }
        )
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return web.json_response(
            {
                "status": "unhealthy",
                "error": str(e),
            },
            status=503,
        )


async def readiness_handler(request: web.Request) -> web.Response:
    """
    Readiness check endpoint.

    The process is ready once the scheduler has been initialized, whether
    or not a scheduled period is currently being monitored.

    Returns:
        JSON response indicating if scheduler is ready
    """
    reset_scheduler = request.app.get(SCHEDULER_KEY)
    if reset_scheduler is None:
        return web.json_response(
            {
                "status": "not_ready",
                "ready": False,
            },
            status=503,
        )

    return web.json_response(
        {
            "status": "ready",
            "ready": True,
            "monitoring": reset_scheduler.is_monitoring,
        }
    )


async def liveness_handler(request: web.Request) -> web.Response:
    """
    Liveness check endpoint.

    Returns:
        JSON response indicating if the process is alive
    """
    return web.json_response(
        {
            "status": "alive",
            "alive": True,
        }
    )


def create_health_app(reset_scheduler: ResetScheduler | None) -> web.Application:
    """
    Build the health check application.

    Args:
        reset_scheduler: Scheduler to report on

    Returns:
        aiohttp application with /health, /readiness and /liveness
    """
    app = web.Application()
    if reset_scheduler is not None:
        app[SCHEDULER_KEY] = reset_scheduler
    app.router.add_get("/health", health_handler)
    app.router.add_get("/readiness", readiness_handler)
    app.router.add_get("/liveness", liveness_handler)
    return app


async def start_health_server(
    reset_scheduler: ResetScheduler,
    host: str = "0.0.0.0",
    port: int = 8081,
) -> tuple[web.AppRunner, web.TCPSite]:
    """
    Start health check server.

    Args:
        reset_scheduler: Scheduler to report on
        host: Host to bind to
        port: Port to bind to

    Returns:
        Tuple of (AppRunner, TCPSite) for cleanup
    """
    runner = web.AppRunner(create_health_app(reset_scheduler))
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()

    logger.info(f"Health check server started on {host}:{port}")
    logger.info(f"  - Health: http://{host}:{port}/health")
    logger.info(f"  - Readiness: http://{host}:{port}/readiness")
    logger.info(f"  - Liveness: http://{host}:{port}/liveness")

    return runner, site


async def stop_health_server(
    runner: web.AppRunner,
    timeout: int = 5,
) -> None:
    """
    Stop health check server gracefully.

    Args:
        runner: AppRunner to cleanup
        timeout: Maximum time to wait for cleanup in seconds
    """
    logger.info("Stopping health check server...")
    try:
        await asyncio.wait_for(runner.cleanup(), timeout=timeout)
        logger.info("Health check server stopped successfully")
    except TimeoutError:
        logger.warning(f"Health check server cleanup timed out after {timeout}s")
    except Exception as e:
        logger.error(f"Error stopping health check server: {e}")
