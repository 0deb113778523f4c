"""Command that classifies one image with a saved Vision Transformer."""

from __future__ import annotations

import sys
from pathlib import Path

import numpy as np

from tinyvit import rng, tensor
from tinyvit.data import IMAGE_SIDE, load_csv, split_dataset
from tinyvit.vit import ModelFormatError, VisionTransformer

PATCH_SIZE = 4
D_MODEL = 64
NUM_LAYERS = 2
NUM_CLASSES = 10
_RULE = "---------------------------------"


def default_image() -> np.ndarray:
    """A 28x28 black image with a white 12x12 square in the middle."""
    image = tensor.zeros(IMAGE_SIDE, IMAGE_SIDE)
    image[8:20, 8:20] = 1.0
    return image


def infer(model_path: str | Path, image: np.ndarray) -> int:
    """Load the model at ``model_path`` and return its predicted class for ``image``."""
    image = np.asarray(image, dtype=np.float32)
    if image.shape != (IMAGE_SIDE, IMAGE_SIDE):
        raise ValueError(
            f"the input image must be {IMAGE_SIDE}x{IMAGE_SIDE}, got shape {image.shape}"
        )
    model = VisionTransformer(IMAGE_SIDE, PATCH_SIZE, D_MODEL, NUM_LAYERS, NUM_CLASSES)
    model.load_model(model_path)
    return model.predict(image)


def _image_from_csv(path: str) -> tuple[np.ndarray, int] | None:
    try:
        data = load_csv(path, max_samples=1, num_classes=NUM_CLASSES)
    except OSError:
        print(f"Error: No se pudo abrir el archivo {path}")
        return None
    train = split_dataset(data, 0.0, 0.0).train
    if len(train) == 0:
        return None
    return train.images[0], train.labels[0]


def main(argv: list[str] | None = None) -> int:
    """Classify the first image of a CSV file, or a generated test image."""
    args = sys.argv[1:] if argv is None else argv
    rng.seed(0)
    if not 1 <= len(args) <= 2:
        print("Uso: tinyvit-infer <ruta_modelo> [ruta_imagen_csv]", file=sys.stderr)
        print(
            "  <ruta_modelo>: Ruta al archivo del modelo Vision Transformer entrenado.",
            file=sys.stderr,
        )
        print(
            "  [ruta_imagen_csv]: Opcional. Ruta a un archivo CSV con imágenes.",
            file=sys.stderr,
        )
        print(
            "                     Si se omite, se usa una imagen de prueba generada.",
            file=sys.stderr,
        )
        return 1

    model_path = args[0]
    image = default_image()
    true_label: int | None = None

    if len(args) == 2:
        csv_path = args[1]
        loaded = _image_from_csv(csv_path)
        if loaded is not None:
            image, true_label = loaded
            print(f"Imagen cargada desde: {csv_path}. Etiqueta real: {true_label}")
        else:
            print(
                f"Advertencia: No se pudo cargar la imagen desde {csv_path}."
                " Usando una imagen generada.",
                file=sys.stderr,
            )
    else:
        print(
            "No se proporcionó ruta de imagen CSV."
            " Generando una imagen de prueba simple (cuadrado blanco)."
        )

    print(f"\nRealizando inferencia con el modelo: {model_path}")
    try:
        prediction = infer(model_path, image)
    except (OSError, ModelFormatError, ValueError) as exc:
        print(f"Error al cargar el modelo desde {model_path}: {exc}", file=sys.stderr)
        print(_RULE)
        print("  ERROR DURANTE LA INFERENCIA    ")
        print(_RULE)
        return 0

    print(_RULE)
    print("      PREDICCIÓN COMPLETADA      ")
    print(_RULE)
    print(f"Clase predicha: {prediction} 🎉")
    if true_label is not None:
        print(f"Etiqueta real (si cargada): {true_label}")
        if prediction == true_label:
            print("¡Coincide con la etiqueta real! ✅")
        else:
            print("No coincide con la etiqueta real. ❌")
    print(_RULE)
    return 0


if __name__ == "__main__":
    sys.exit(main())