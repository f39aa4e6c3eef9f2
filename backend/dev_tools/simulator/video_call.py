import asyncio
import logging

from telemed.client import (
    CallSessionLauncher,
    LocalRequestMirror,
    TelemedAPI,
    UserInfo,
    VideoCallService,
    VideoWidgetUnavailable,
)
from telemed.core.config import settings
from telemed.core.logging import configure_logging

STUDENT = UserInfo(id="STU001", name="John Doe", email="john@example.com")
DOCTOR = UserInfo(id="DOC001", name="Dr. SmartMed", email="doctor@smartmed.com")

logger = logging.getLogger("simulator")


def open_room(session) -> None:
    print(f"\n📹 JOINING → {session.join_url}")


async def doctor(service: VideoCallService, launcher: CallSessionLauncher, accepted: asyncio.Event) -> None:
    async def on_new(added) -> None:
        request = added[0]
        print(f"\n🔔 NEW REQUEST from {request.get('callerName')} ({request.get('id')})")
        result = await service.accept_request(request["id"])
        if result.success:
            try:
                await launcher.launch(result.room_name, DOCTOR.name, DOCTOR.email)
            except VideoWidgetUnavailable as exc:
                print(f"⚠️  {exc.user_message}")
        accepted.set()

    stop = service.watch_requests(lambda snapshot: None, interval=1.0, on_new=on_new)
    try:
        await accepted.wait()
    finally:
        stop()


async def student(service: VideoCallService, launcher: CallSessionLauncher) -> None:
    receipt = await service.send_request()
    print(f"\n🙋 REQUEST SENT → {receipt.request_id} room={receipt.room_name} offline={receipt.offline}")
    response = await service.wait_for_response(receipt.request_id)
    print(f"\n📨 RESPONSE → {response.status}")
    if response.status == "accepted":
        try:
            await launcher.launch(response.room_name, STUDENT.name, STUDENT.email)
        except VideoWidgetUnavailable as exc:
            print(f"⚠️  {exc.user_message}")


async def main() -> None:
    configure_logging()
    async with TelemedAPI(settings.api_base_url) as student_api, TelemedAPI(settings.api_base_url) as doctor_api:
        student_service = VideoCallService(student_api, LocalRequestMirror(".student_storage.json"), STUDENT)
        doctor_service = VideoCallService(doctor_api, LocalRequestMirror(".doctor_storage.json"), DOCTOR)
        student_launcher = CallSessionLauncher(student_service.mirror, navigator=open_room)
        doctor_launcher = CallSessionLauncher(doctor_service.mirror, navigator=open_room)

        accepted = asyncio.Event()
        doctor_task = asyncio.create_task(doctor(doctor_service, doctor_launcher, accepted))
        await student(student_service, student_launcher)
        if not accepted.is_set():
            doctor_task.cancel()
        await asyncio.gather(doctor_task, return_exceptions=True)
        removed = await doctor_service.cleanup_old_requests()
        logger.info("simulation_done removed=%s", removed)


if __name__ == "__main__":
    asyncio.run(main())
