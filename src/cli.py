import argparse

from loguru import logger

from src.config import get_settings
from src.db.database import get_sync_session, init_db
from src.devices.registry import DeviceRegistry
from src.notifications.dispatcher import PushDispatcher
from src.notifications.expo import ExpoPushClient

settings = get_settings()


def send_test(token: str, title: str, body: str):
    """發送測試推播到指定裝置"""
    dispatcher = PushDispatcher(ExpoPushClient())
    tickets = dispatcher.send_to_device(token, title, body, {"type": "test"})
    if not tickets:
        logger.error(f"No ticket returned for {token} (gateway {dispatcher.state.value})")
        return
    for ticket in tickets:
        logger.info(f"Ticket: status={ticket.status} id={ticket.id} error={ticket.error}")


def list_devices():
    devices = DeviceRegistry(get_sync_session)
    active = set(devices.get_active_tokens())
    for device in devices.get_all_devices():
        state = "active" if device.token in active else "expired"
        logger.info(
            f"{device.platform:8} {device.device_name:24} {state:8} "
            f"{device.last_updated:%Y-%m-%d %H:%M} {device.token}"
        )


def cleanup_devices():
    removed = DeviceRegistry(get_sync_session).cleanup_expired_devices()
    logger.info(f"Removed {removed} expired devices")


def main():
    parser = argparse.ArgumentParser(description="Push Scheduler CLI")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # init command
    subparsers.add_parser("init", help="Initialize database")

    # serve command
    subparsers.add_parser("serve", help="Start API server")

    # send-test command
    send_parser = subparsers.add_parser("send-test", help="Send a test push to one device")
    send_parser.add_argument("--token", "-t", required=True, help="Expo push token")
    send_parser.add_argument("--title", default="测试通知", help="Notification title")
    send_parser.add_argument("--body", default="这是一条测试推送", help="Notification body")

    # devices command
    subparsers.add_parser("devices", help="List registered devices")

    # cleanup-devices command
    subparsers.add_parser("cleanup-devices", help="Remove expired devices")

    args = parser.parse_args()

    if args.command == "init":
        init_db()
    elif args.command == "serve":
        import uvicorn

        uvicorn.run(
            "src.main:app",
            host=settings.api_host,
            port=settings.api_port,
            reload=settings.debug,
        )
    elif args.command == "send-test":
        send_test(args.token, args.title, args.body)
    elif args.command == "devices":
        init_db()
        list_devices()
    elif args.command == "cleanup-devices":
        init_db()
        cleanup_devices()
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
