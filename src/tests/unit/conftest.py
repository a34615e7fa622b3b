"""Shared fixtures for unit tests."""

import itertools
from collections import Counter
from unittest.mock import AsyncMock

import pytest

from qcvolume.adapters import QingCloudVolumeManager
from qcvolume.core.errors import remote_error
from qcvolume.core.interfaces import ControlPlane, VolumeManager
from qcvolume.core.jobs import JobWaiter
from qcvolume.core.models import (
    Instance,
    Job,
    JobStatus,
    JobSubmission,
    Volume,
    VolumeInstance,
    VolumeOptions,
)


class InMemoryControlPlane(ControlPlane):
    """Control plane double that keeps volumes in a dict.

    Mutations take effect immediately and return a job that is already
    successful. Rejections use the same messages as the real API, so
    benign errors are classified the same way.
    """

    def __init__(self) -> None:
        self.volumes: dict[str, Volume] = {}
        self.instances: dict[str, Instance] = {}
        self.jobs: dict[str, Job] = {}
        self.calls: Counter[str] = Counter()
        self.device_for_attach = "/dev/vdc"
        self.closed = False
        self._ids = itertools.count(1)

    def _job(self, action: str) -> str:
        job_id = f"j-{next(self._ids):04d}"
        self.jobs[job_id] = Job(job_id=job_id, status=JobStatus.SUCCESSFUL, job_action=action)
        return job_id

    def add_volume(self, volume_id: str, name: str = "", instance_id: str = "", device: str = "") -> Volume:
        instance = VolumeInstance(instance_id=instance_id, device=device) if instance_id else None
        volume = Volume(volume_id=volume_id, volume_name=name, size=10, status="available", instance=instance)
        self.volumes[volume_id] = volume
        return volume

    async def create_volumes(self, options: VolumeOptions) -> JobSubmission:
        self.calls["create_volumes"] += 1
        volume_id = f"vol-{next(self._ids):08d}"
        self.volumes[volume_id] = Volume(
            volume_id=volume_id,
            volume_name=options.volume_name,
            size=options.capacity_gb,
            volume_type=int(options.volume_type),
            status="available",
        )
        return JobSubmission(job_id=self._job("CreateVolumes"), volume_ids=[volume_id])

    async def delete_volumes(self, volume_ids: list[str]) -> JobSubmission:
        self.calls["delete_volumes"] += 1
        for volume_id in volume_ids:
            if volume_id not in self.volumes:
                raise remote_error(
                    "DeleteVolumes", 2100, f"resource [{volume_id}] has already been deleted"
                )
        for volume_id in volume_ids:
            del self.volumes[volume_id]
        return JobSubmission(job_id=self._job("DeleteVolumes"), volume_ids=volume_ids)

    async def attach_volumes(self, volume_ids: list[str], instance_id: str) -> JobSubmission:
        self.calls["attach_volumes"] += 1
        for volume_id in volume_ids:
            volume = self.volumes[volume_id]
            if volume.attached_instance_id:
                raise remote_error(
                    "AttachVolumes",
                    2400,
                    f"volume [{volume_id}] have been already attached to instance "
                    f"[{volume.attached_instance_id}]",
                )
            self.volumes[volume_id] = volume.model_copy(
                update={"instance": VolumeInstance(instance_id=instance_id, device=self.device_for_attach)}
            )
        return JobSubmission(job_id=self._job("AttachVolumes"), volume_ids=volume_ids)

    async def detach_volumes(self, volume_ids: list[str], instance_id: str) -> JobSubmission:
        self.calls["detach_volumes"] += 1
        for volume_id in volume_ids:
            volume = self.volumes[volume_id]
            if volume.attached_instance_id != instance_id:
                raise remote_error(
                    "DetachVolumes", 2400, f"volume [{volume_id}] is not attached to [{instance_id}]"
                )
            self.volumes[volume_id] = volume.model_copy(update={"instance": None})
        return JobSubmission(job_id=self._job("DetachVolumes"), volume_ids=volume_ids)

    async def describe_volumes(
        self,
        volume_ids: list[str] | None = None,
        search_word: str | None = None,
    ) -> list[Volume]:
        self.calls["describe_volumes"] += 1
        volumes = list(self.volumes.values())
        if volume_ids is not None:
            volumes = [v for v in volumes if v.volume_id in volume_ids]
        if search_word:
            volumes = [v for v in volumes if search_word in v.volume_name or search_word in v.volume_id]
        return volumes

    async def modify_volume_attributes(self, volume_id: str, volume_name: str) -> None:
        self.calls["modify_volume_attributes"] += 1
        volume = self.volumes[volume_id]
        self.volumes[volume_id] = volume.model_copy(update={"volume_name": volume_name})

    async def describe_instances(
        self,
        instance_ids: list[str],
        status: list[str] | None = None,
        verbose: int = 0,
        is_cluster_node: int = 0,
    ) -> list[Instance]:
        self.calls["describe_instances"] += 1
        return [self.instances[i] for i in instance_ids if i in self.instances]

    async def describe_jobs(self, job_ids: list[str]) -> list[Job]:
        self.calls["describe_jobs"] += 1
        return [self.jobs[j] for j in job_ids if j in self.jobs]

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def control_plane() -> InMemoryControlPlane:
    """Empty in-memory control plane."""
    return InMemoryControlPlane()


@pytest.fixture
def waiter(control_plane: InMemoryControlPlane) -> JobWaiter:
    """Job waiter that polls without sleeping."""
    return JobWaiter(control_plane, interval=0, timeout=0)


@pytest.fixture
def instance_id_file(tmp_path) -> str:
    path = tmp_path / "instance-id"
    path.write_text("i-node1\n")
    return str(path)


@pytest.fixture
def manager(
    control_plane: InMemoryControlPlane,
    waiter: JobWaiter,
    instance_id_file: str,
) -> QingCloudVolumeManager:
    """Volume manager over the in-memory control plane."""
    return QingCloudVolumeManager(control_plane, waiter, instance_id_path=instance_id_file)


@pytest.fixture
def mock_manager() -> AsyncMock:
    """Mock VolumeManager for driver and provisioner tests."""
    manager = AsyncMock(spec=VolumeManager)
    manager.attach_volume = AsyncMock(return_value="/dev/vdc")
    manager.volume_is_attached = AsyncMock(return_value=True)
    manager.get_volume_id_by_name = AsyncMock(return_value="vol-abc12345")
    manager.create_volume = AsyncMock(return_value="vol-new00001")
    manager.delete_volume = AsyncMock(return_value=True)
    return manager
