"""
End-to-end tests: load from disk, process, write .glb / .gltf, command-line exit codes.
"""

import base64

import numpy as np
import pygltflib
import pytest

import gltf_utility
from gltf_modules.accessor_types import find_attribute
from gltf_modules.asset_io import load_document, read_glb_chunks
from gltf_modules.errors import FormatError, MissingFileError, SizeMismatchError
from gltf_modules.indices import read_indices
from gltf_modules.processor import GltfProcessor, Options
from conftest import make_resolver


def _load(path):
    with path.open("rb") as stream:
        return load_document(stream)


def _glb_blob(path):
    _, blob = read_glb_chunks(path.read_bytes())
    return blob


def _quad_asset(builder):
    primitive = builder.add_quad()
    builder.add_mesh(primitive, name="quad")
    return primitive


def test_glb_round_trip_with_tangents_and_unwind(builder, tmp_path):
    _quad_asset(builder)
    source = builder.save_glb(tmp_path / "quad.glb")
    output = tmp_path / "out" / "quad_processed.glb"

    GltfProcessor().process(Options(input_file=str(source), output_file=str(output), tangent=True, unwind=True))

    document = _load(output)
    assert len(document.buffers) == 1
    assert all(not b.uri for b in document.buffers)
    resolver = make_resolver(document, _glb_blob(output))
    primitive = document.meshes[0].primitives[0]
    assert read_indices(resolver, primitive).tolist() == [2, 1, 0, 0, 3, 2]
    tangent = find_attribute(primitive, "TANGENT")
    np.testing.assert_allclose(resolver.read_array(tangent, np.float32, 4)[:, 0:3], [[1, 0, 0]] * 4, atol=1e-6)


def test_binary_package_embeds_external_payloads(builder, tmp_path):
    _quad_asset(builder)
    source = builder.save_gltf(tmp_path / "quad.gltf")
    output = tmp_path / "quad.glb"

    GltfProcessor().process(Options(input_file=str(source), output_file=str(output)))

    document = _load(output)
    assert [b.uri for b in document.buffers] == [None]
    assert _glb_blob(output)[: len(builder.blob)] == bytes(builder.blob)


def test_binary_package_merges_multiple_buffers(builder, tmp_path):
    primitive = _quad_asset(builder)
    document = builder.finish(uri="quad.bin")
    (tmp_path / "quad.bin").write_bytes(bytes(builder.blob))
    (tmp_path / "extra.bin").write_bytes(np.array([3, 2, 1], dtype="<u2").tobytes())
    document.buffers.append(pygltflib.Buffer(uri="extra.bin", byteLength=6))
    document.bufferViews.append(pygltflib.BufferView(buffer=1, byteOffset=0, byteLength=6))
    document.accessors.append(
        pygltflib.Accessor(bufferView=len(document.bufferViews) - 1, componentType=pygltflib.UNSIGNED_SHORT, count=3, type=pygltflib.SCALAR)
    )
    extra = len(document.accessors) - 1
    document.save_json(str(tmp_path / "quad.gltf"))
    output = tmp_path / "merged.glb"

    GltfProcessor().process(Options(input_file=str(tmp_path / "quad.gltf"), output_file=str(output)))

    merged = _load(output)
    assert len(merged.buffers) == 1
    resolver = make_resolver(merged, _glb_blob(output))
    assert resolver.read_array(extra, "<u2").tolist() == [3, 2, 1]
    assert read_indices(resolver, merged.meshes[0].primitives[0]).tolist() == [0, 1, 2, 2, 3, 0]
    assert primitive.indices == merged.meshes[0].primitives[0].indices


def test_document_output_renames_payload(builder, tmp_path):
    _quad_asset(builder)
    source = builder.save_gltf(tmp_path / "quad.gltf")
    output = tmp_path / "out" / "renamed.gltf"

    GltfProcessor().process(Options(input_file=str(source), output_file=str(output), tangent=True))

    document = _load(output)
    assert [b.uri for b in document.buffers] == ["renamed.bin"]
    payload = (tmp_path / "out" / "renamed.bin").read_bytes()
    assert len(payload) == document.buffers[0].byteLength
    assert find_attribute(document.meshes[0].primitives[0], "TANGENT") is not None


def test_document_output_from_glb_gets_named_payload(builder, tmp_path):
    _quad_asset(builder)
    source = builder.save_glb(tmp_path / "quad.glb")
    output = tmp_path / "out" / "quad.gltf"

    GltfProcessor().process(Options(input_file=str(source), output_file=str(output)))

    document = _load(output)
    assert [b.uri for b in document.buffers] == ["quad.bin"]
    assert (tmp_path / "out" / "quad.bin").read_bytes()[: len(builder.blob)] == bytes(builder.blob)


def test_data_uri_buffers_are_decoded(builder, tmp_path):
    _quad_asset(builder)
    document = builder.finish(uri="data:application/octet-stream;base64," + base64.b64encode(bytes(builder.blob)).decode("ascii"))
    document.save_json(str(tmp_path / "embedded.gltf"))
    output = tmp_path / "embedded_out.gltf"

    GltfProcessor().process(Options(input_file=str(tmp_path / "embedded.gltf"), output_file=str(output), unwind=True))

    assert _load(output).buffers[0].uri == "embedded_out.bin"
    written = (tmp_path / "embedded_out.bin").read_bytes()
    assert len(written) == len(builder.blob)


def test_missing_payload_raises(builder, tmp_path):
    _quad_asset(builder)
    source = builder.save_gltf(tmp_path / "quad.gltf")
    (tmp_path / "quad.bin").unlink()
    output = tmp_path / "out.glb"

    with pytest.raises(MissingFileError):
        GltfProcessor().process(Options(input_file=str(source), output_file=str(output), tangent=True))
    assert not output.exists()


def test_malformed_container_raises(tmp_path):
    source = tmp_path / "broken.glb"
    source.write_bytes(b"glTF\x02\x00\x00\x00\xff\xff\x00\x00" + b"\x00" * 8)

    with pytest.raises(FormatError):
        GltfProcessor().process(Options(input_file=str(source), output_file=str(tmp_path / "x.glb")))


def test_size_mismatch_writes_nothing(builder, tmp_path):
    primitive = _quad_asset(builder)
    positions = builder.document.accessors[primitive.attributes.POSITION]
    positions.componentType = pygltflib.SHORT
    positions.count = 3
    source = builder.save_gltf(tmp_path / "quad.gltf")
    output = tmp_path / "out" / "result.gltf"

    with pytest.raises(SizeMismatchError):
        GltfProcessor().process(Options(input_file=str(source), output_file=str(output), tangent=True))
    assert not output.exists()
    assert not (tmp_path / "out" / "result.bin").exists()


def test_cli_success(builder, tmp_path):
    _quad_asset(builder)
    source = builder.save_glb(tmp_path / "quad.glb")
    output = tmp_path / "quad_out.glb"

    assert gltf_utility.main([str(source), str(output), "-t", "-u"]) == gltf_utility.ERROR_SUCCESS
    assert output.is_file()


@pytest.mark.parametrize(
    "argv",
    [
        [],
        ["missing.glb", "out.glb"],
        ["-x"],
    ],
)
def test_cli_bad_arguments(argv):
    assert gltf_utility.main(argv) == gltf_utility.ERROR_BAD_ARGUMENTS


def test_cli_rejects_unknown_output_extension(builder, tmp_path):
    _quad_asset(builder)
    source = builder.save_glb(tmp_path / "quad.glb")

    assert gltf_utility.main([str(source), str(tmp_path / "quad.obj")]) == gltf_utility.ERROR_BAD_ARGUMENTS


def test_cli_reports_processing_failure(builder, tmp_path):
    _quad_asset(builder)
    source = builder.save_gltf(tmp_path / "quad.gltf")
    (tmp_path / "quad.bin").unlink()

    result = gltf_utility.main([str(source), str(tmp_path / "out.glb"), "-t"])
    assert result == gltf_utility.ERROR_UNHANDLED_EXCEPTION
