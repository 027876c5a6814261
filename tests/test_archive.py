import io
import threading
import zipfile

import pytest

from photozip.archive import QueueStream, StreamClosedError, ZipArchiveWriter


def test_zip_writer_appends_entries_in_order():
    buffer = io.BytesIO()
    writer = ZipArchiveWriter(buffer)
    writer.append("folder/01.png", b"\x89PNG fake")
    writer.append("folder/source.txt", "https://shop.example/p\n")
    writer.finalize()

    with zipfile.ZipFile(io.BytesIO(buffer.getvalue())) as archive:
        assert archive.namelist() == ["folder/01.png", "folder/source.txt"]
        assert archive.read("folder/source.txt") == b"https://shop.example/p\n"
    assert writer.names == ["folder/01.png", "folder/source.txt"]


def test_queue_stream_delivers_a_readable_zip():
    stream = QueueStream(chunk_size=1024, maxsize=2)
    payload = bytes(range(256)) * 200

    def produce():
        writer = ZipArchiveWriter(stream, compresslevel=1)
        for i in range(5):
            writer.append(f"{i:02d}.bin", payload)
        writer.finalize()
        stream.close()

    thread = threading.Thread(target=produce)
    thread.start()
    data = b"".join(stream.iter_chunks())
    thread.join()

    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        assert archive.namelist() == [f"{i:02d}.bin" for i in range(5)]
        assert archive.read("04.bin") == payload


def test_writes_after_abandon_fail():
    stream = QueueStream(chunk_size=1)
    stream.abandon()
    with pytest.raises(StreamClosedError):
        stream.write(b"x")


def test_failure_is_raised_to_consumer():
    stream = QueueStream()
    stream.fail(RuntimeError("bad watermark"))
    with pytest.raises(RuntimeError, match="bad watermark"):
        stream.next_chunk()


def test_close_flushes_buffer_then_ends():
    stream = QueueStream(chunk_size=1024)
    stream.write(b"abc")
    stream.close()
    assert stream.next_chunk() == b"abc"
    assert stream.next_chunk() is None
