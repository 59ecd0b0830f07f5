from fishnet.io.ingest.images import (
    IMAGE_EXTENSIONS,
    frame_from_bgr,
    iter_image_paths,
    load_frame,
    read_bgr,
)

__all__ = ["IMAGE_EXTENSIONS", "frame_from_bgr", "iter_image_paths", "load_frame", "read_bgr"]
