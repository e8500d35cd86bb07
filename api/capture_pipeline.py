"""
Camera capture and classification for the item-name field.

idle -> camera_open -> capturing -> classifying -> idle
"""
import traceback

from image_classifier import classify_pixels, decode_data_uri, pixel_buffer, top_label

IDLE = "idle"
CAMERA_OPEN = "camera_open"
CAPTURING = "capturing"
CLASSIFYING = "classifying"

PROCESS_IMAGE_ERROR = "Failed to process image."


class CapturePipeline:
    """Drives the camera flags and loading flag of the controller's view state."""

    def __init__(self, controller, classify=classify_pixels):
        self.controller = controller
        self.classify = classify
        self.status = IDLE

    @property
    def busy(self):
        return self.status in (CAPTURING, CLASSIFYING)

    def open_camera(self):
        with self.controller.lock:
            if self.busy:
                return False
            self.status = CAMERA_OPEN
            self.controller.state.is_camera_open = True
            return True

    def close_camera(self):
        with self.controller.lock:
            if self.status != CAMERA_OPEN:
                return False
            self.status = IDLE
            self.controller.state.is_camera_open = False
            return True

    def capture(self, data_uri):
        """
        Classify a captured still and write the top label into the form.
        Returns the label, or None when the capture failed or was ignored
        because another one is still running.
        """
        state = self.controller.state
        with self.controller.lock:
            if self.busy:
                print("⚠️ Capture ignored: classification already in progress")
                return None
            self.status = CAPTURING
            state.photo = data_uri
            state.is_camera_open = False
            state.is_loading = True

        label = None
        try:
            img_bytes = decode_data_uri(data_uri)
            with pixel_buffer(img_bytes) as pixels:
                with self.controller.lock:
                    self.status = CLASSIFYING
                predictions = self.classify(pixels)
            label = top_label(predictions)
        except Exception as e:
            print(f"❌ Error processing image: {e}")
            traceback.print_exc()
            with self.controller.lock:
                state.error = PROCESS_IMAGE_ERROR
        finally:
            with self.controller.lock:
                if label is not None:
                    state.classification = label
                    state.item = label
                state.is_loading = False
                self.status = IDLE

        if label is not None:
            print(f"✅ Photo classified as '{label}'")
        return label
