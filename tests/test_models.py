"""Unit tests for Pydantic models."""

import math
import pytest

from acc_transform_mcp.models import (
    Point3D,
    Vector3D,
    PendingChange,
    ManifestEntry,
    TransformManifest,
    Credential,
    ItemDetails,
    VersionDetails,
    StorageLocation,
    OutputSlot,
    JobState,
    WorkItemStatus,
    TransformJob,
)


def make_change(element_id=101, key="guid-0001", original=(0, 0, 0), new=(1, 2, 3)):
    return PendingChange(
        element_key=key,
        element_id=element_id,
        element_name="Wall",
        original_position=Point3D.coerce(original),
        new_position=Point3D.coerce(new),
    )


def make_job(job_id="job-1"):
    manifest = TransformManifest(transforms={"guid-0001": ManifestEntry.from_change(make_change())})
    output = OutputSlot(bucket_key="revit_temp_1", object_key="output.rvt", signed_url="https://s3.test/out")
    return TransformJob(job_id=job_id, manifest=manifest, output=output)


class TestPoint3D:
    """Tests for Point3D model."""

    def test_creation_default(self):
        """Test default point creation."""
        p = Point3D()
        assert p.to_tuple() == (0.0, 0.0, 0.0)

    def test_coerce_from_dict(self):
        """Test building a point from a mapping."""
        assert Point3D.coerce({"x": 1, "y": 2, "z": 3}).to_tuple() == (1.0, 2.0, 3.0)

    def test_coerce_from_sequence(self):
        """Test building a point from a 3-sequence."""
        assert Point3D.coerce([4, 5, 6]).to_tuple() == (4.0, 5.0, 6.0)

    def test_coerce_passes_point_through(self):
        """Test that an existing point is returned as is."""
        p = Point3D(x=1.0)
        assert Point3D.coerce(p) is p

    def test_is_finite(self):
        """Test finiteness check."""
        assert Point3D(x=1.0, y=2.0, z=3.0).is_finite()
        assert not Point3D(x=math.nan).is_finite()
        assert not Point3D(z=math.inf).is_finite()

    def test_subtraction_gives_vector(self):
        """Test point difference."""
        v = Point3D(x=5.0, y=7.0, z=9.0) - Point3D(x=1.0, y=2.0, z=3.0)
        assert isinstance(v, Vector3D)
        assert v.to_tuple() == (4.0, 5.0, 6.0)

    def test_add_vector(self):
        """Test moving a point by a vector."""
        p = Point3D(x=1.0) + Vector3D(x=1.0, y=1.0)
        assert p.to_tuple() == (2.0, 1.0, 0.0)


class TestVector3D:
    """Tests for Vector3D model."""

    def test_magnitude_3_4_5(self):
        """Test 3-4-5 triangle magnitude."""
        assert Vector3D(x=3.0, y=4.0).magnitude == pytest.approx(5.0)

    def test_negation(self):
        """Test vector negation."""
        assert (-Vector3D(x=1.0, y=-2.0, z=3.0)).to_tuple() == (-1.0, 2.0, -3.0)


class TestPendingChange:
    """Tests for PendingChange model."""

    def test_translation_is_new_minus_original(self):
        """Test that translation is derived exactly."""
        change = make_change(original=(1.5, -2.25, 10.0), new=(3.0, 0.75, 9.5))
        assert change.translation.to_tuple() == (1.5, 3.0, -0.5)

    def test_translation_serialized(self):
        """Test that translation appears in dumps."""
        data = make_change().model_dump()
        assert data["translation"] == {"x": 1.0, "y": 2.0, "z": 3.0}


class TestTransformManifest:
    """Tests for the manifest payload."""

    def test_payload_shape(self):
        """Test camelCase manifest written for the worker."""
        change = make_change()
        manifest = TransformManifest(transforms={change.element_key: ManifestEntry.from_change(change)})
        payload = manifest.to_payload()

        entry = payload["transforms"]["guid-0001"]
        assert entry == {
            "elementId": 101,
            "uniqueId": "guid-0001",
            "elementName": "Wall",
            "originalPosition": {"x": 0.0, "y": 0.0, "z": 0.0},
            "newPosition": {"x": 1.0, "y": 2.0, "z": 3.0},
            "translation": {"x": 1.0, "y": 2.0, "z": 3.0},
        }

    def test_len(self):
        """Test manifest size."""
        assert len(TransformManifest()) == 0
        assert len(make_job().manifest) == 1

    def test_entry_is_a_snapshot(self):
        """Test that the entry does not share positions with the change."""
        change = make_change()
        entry = ManifestEntry.from_change(change)
        assert entry.new_position is not change.new_position


class TestCredential:
    """Tests for the persisted credential."""

    def test_camel_case_round_trip(self):
        """Test stored field names."""
        credential = Credential(access_token="a", refresh_token="r", expires_at=100.0)
        dumped = credential.model_dump(by_alias=True)
        assert dumped == {"accessToken": "a", "refreshToken": "r", "expiresAt": 100.0}
        assert Credential.model_validate(dumped) == credential


class TestAccModels:
    """Tests for Data Management response parsing."""

    def test_item_details_from_api(self):
        """Test item parsing."""
        item = ItemDetails.from_api({
            "data": {
                "id": "urn:adsk.wipprod:dm.lineage:abc",
                "attributes": {"displayName": "Tower.rvt"},
                "relationships": {
                    "tip": {"data": {"type": "versions", "id": "urn:adsk.wipprod:fs.file:vf.abc?version=3"}},
                    "parent": {"data": {"type": "folders", "id": "urn:adsk.wipprod:fs.folder:co.xyz"}},
                },
            }
        })
        assert item.display_name == "Tower.rvt"
        assert item.tip_version_id.endswith("version=3")
        assert item.parent_folder_id == "urn:adsk.wipprod:fs.folder:co.xyz"

    def test_version_details_from_api(self):
        """Test version parsing."""
        version = VersionDetails.from_api({
            "data": {
                "id": "urn:v1",
                "attributes": {
                    "name": "Tower.rvt",
                    "storageSize": 1024,
                    "extension": {"type": "versions:autodesk.bim360:C4RModel"},
                },
                "relationships": {
                    "storage": {"data": {"id": "urn:adsk.objects:os.object:wip.dm.prod/abc.rvt"}},
                },
            }
        })
        assert version.storage_urn == "urn:adsk.objects:os.object:wip.dm.prod/abc.rvt"
        assert version.extension_type == "versions:autodesk.bim360:C4RModel"
        assert version.storage_size == 1024


class TestStorageLocation:
    """Tests for storage urn parsing."""

    def test_from_urn(self):
        """Test bucket and object split."""
        location = StorageLocation.from_urn("urn:adsk.objects:os.object:wip.dm.prod/abc-123.rvt")
        assert location.bucket_key == "wip.dm.prod"
        assert location.object_key == "abc-123.rvt"

    def test_object_key_keeps_slashes(self):
        """Test that only the first slash separates the bucket."""
        location = StorageLocation.from_urn("urn:adsk.objects:os.object:bucket/dir/sub/file.rvt")
        assert location.object_key == "dir/sub/file.rvt"
        assert location.urn == "urn:adsk.objects:os.object:bucket/dir/sub/file.rvt"

    @pytest.mark.parametrize("urn", ["urn:adsk.objects:os.object:bucketonly", "urn:adsk.objects:os.object:/obj"])
    def test_invalid_urn(self, urn):
        """Test that malformed urns are rejected."""
        with pytest.raises(ValueError):
            StorageLocation.from_urn(urn)


class TestJobState:
    """Tests for work item status mapping."""

    @pytest.mark.parametrize("status,state", [
        ("pending", JobState.PENDING),
        ("inprogress", JobState.IN_PROGRESS),
        ("success", JobState.SUCCEEDED),
        ("failedInstructions", JobState.FAILED),
        ("failedDownload", JobState.FAILED),
        ("cancelled", JobState.FAILED),
    ])
    def test_from_status(self, status, state):
        """Test status mapping."""
        assert JobState.from_status(status) == state

    def test_unknown_status(self):
        """Test that unknown statuses are rejected."""
        with pytest.raises(ValueError):
            JobState.from_status("weird")

    def test_work_item_status_aliases(self):
        """Test work item status parsing."""
        status = WorkItemStatus.model_validate({
            "id": "job-1",
            "status": "failedInstructions",
            "reportUrl": "https://s3.test/report.txt",
            "debugInfoUrl": "https://s3.test/debug.zip",
            "stats": {"timeQueued": "2024-01-01T00:00:00Z"},
        })
        assert status.state == JobState.FAILED
        assert status.report_url == "https://s3.test/report.txt"
        assert status.debug_info_url == "https://s3.test/debug.zip"


class TestTransformJob:
    """Tests for the job lifecycle."""

    def test_state_moves_forward(self):
        """Test pending to in progress to succeeded."""
        job = make_job()
        assert job.state == JobState.PENDING
        job.record_status("inprogress")
        job.record_status("success")
        assert job.state == JobState.SUCCEEDED
        assert job.last_status == "success"

    def test_stale_status_ignored(self):
        """Test that an older status does not move the state back."""
        job = make_job()
        job.record_status("inprogress")
        job.record_status("pending")
        assert job.state == JobState.IN_PROGRESS
        job.record_status("success")
        job.record_status("inprogress")
        assert job.state == JobState.SUCCEEDED

    def test_conflicting_terminal_status_rejected(self):
        """Test that a succeeded job cannot become failed."""
        job = make_job()
        job.record_status("success")
        with pytest.raises(ValueError):
            job.record_status("failedInstructions")

    def test_locations_set_once(self):
        """Test result and diagnostics locations are write-once."""
        job = make_job()
        job.record_result_location("urn:a")
        with pytest.raises(ValueError):
            job.record_result_location("urn:b")
        job.record_diagnostics_location("https://s3.test/debug.zip")
        with pytest.raises(ValueError):
            job.record_diagnostics_location("https://s3.test/other.zip")
        assert job.result_location == "urn:a"

    def test_identity_frozen(self):
        """Test that submission fields cannot be reassigned."""
        job = make_job()
        with pytest.raises(Exception):
            job.job_id = "other"

    def test_summary(self):
        """Test summary dict."""
        summary = make_job().summary()
        assert summary["job_id"] == "job-1"
        assert summary["state"] == "pending"
        assert summary["transform_count"] == 1
