# tinyvit

A compact Vision Transformer for classifying 28x28 grayscale images such as
MNIST or Fashion-MNIST, written with NumPy only.

The model (`tinyvit.vit.VisionTransformer`) splits each image into square
patches, embeds them with a linear layer, puts a class token in front, adds
position embeddings, runs the sequence through a stack of
`tinyvit.layers.TransformerBlock`s, applies a final layer norm and classifies
the class-token features with a linear head.

## Installation

```
pip install .
```

For the tests:

```
pip install .[test]
pytest
```

## Data format

Both commands read CSV files in the common MNIST layout: a header line, then
one image per line with the label first and up to 784 pixel values (0–255)
after it. Pixels are scaled to [0, 1]; missing pixels are left at zero.

## Training

```
tinyvit-train train.csv test.csv
```

The random generator is seeded with 42. Ten percent of the training file is
held out for validation. Training runs for 10 epochs with batch size 128 and
learning rate 3e-4, showing a progress bar and printing loss and accuracy for
the training and validation sets after every epoch. A final evaluation on the
test file prints the first 15 predictions and the overall loss and accuracy.
The model is then written to `./models/vit_YYYYMMDD_HHMMSS.bin` (the
`models` directory is created if needed). The command's messages are in
Spanish.

## Inference

```
tinyvit-infer path/to/model.bin [images.csv]
```

With a CSV file, the first image in it is classified and compared with its
label; if no image can be read from the file, a generated image is used
instead. Without a CSV file, the generated test image — a white 12x12 square
in the middle of a black 28x28 image — is classified. The model file must hold
a model for 28x28 images.

## Library use

```python
from tinyvit.vit import VisionTransformer
from tinyvit.infer import default_image, infer

model = VisionTransformer(28, 4, 64, 2, 10)
print(model.predict(default_image()))
model.save_model("model.bin")
print(infer("model.bin", default_image()))
```

- `tinyvit.data.load_csv` loads a `Dataset`; `split_dataset` and
  `train_val_split` shuffle and split it.
- `tinyvit.train.run_epoch` trains for one pass in mini-batches and
  `tinyvit.train.evaluate` measures loss and accuracy; both return an
  `EpochStats`.
- `VisionTransformer.forward`, `backward`, `compute_loss`, `update_weights`
  and `zero_grad` expose the training steps one by one.
- `tinyvit.rng.seed` reseeds the shared random generator used for weight
  initialisation and shuffling.

## Model files

`save_model` writes a plain-text file: a `MODEL_CONFIG` header with the
configuration, then each parameter matrix as a name, its dimensions and its
values, written with six significant digits. `load_model` replaces the
model's configuration and parameters with those in the file and raises
`tinyvit.vit.ModelFormatError` when the file does not match that layout.

## Limitations

- The "attention" in each transformer block is a single linear projection,
  not multi-head self-attention.
- Layer norm passes gradients straight through in the backward pass, and its
  scale and shift are never trained.
- Weights are updated by plain gradient descent with gradients clipped to
  [-1, 1]; there is no other optimiser and everything runs on the CPU, one
  image at a time.