import math

import numpy as np
import pytest

from tinyvit import rng
from tinyvit.vit import ModelFormatError, VisionTransformer


def _small_model(seed=7, num_layers=1):
    rng.seed(seed)
    return VisionTransformer(8, 4, 8, num_layers, 3)


def _image(seed=3, size=8):
    return np.random.default_rng(seed).random((size, size)).astype(np.float32)


def test_shapes_follow_configuration():
    rng.seed(1)
    model = VisionTransformer(28, 4, 16, 2, 10)
    assert model.num_patches == 49
    assert model.position_embeddings.shape == (50, 16)
    assert model.class_token.shape == (1, 16)
    assert model.patch_embedding.weight.shape == (16, 16)
    assert model.classification_head.weight.shape == (10, 16)
    assert len(model.transformer_blocks) == 2


def test_embeddings_are_small():
    model = _small_model()
    class_max = float(np.abs(model.class_token).max())
    position_max = float(np.abs(model.position_embeddings).max())
    assert 0.0 < class_max < 0.1
    assert 0.0 < position_max < 0.1
    position_std = float(np.std(model.position_embeddings))
    assert 0.003 < position_std < 0.03


def test_image_to_patches_order():
    model = _small_model()
    image = np.arange(64, dtype=np.float32).reshape(8, 8)
    patches = model.image_to_patches(image)
    assert patches.shape == (4, 16)
    np.testing.assert_array_equal(patches[0], image[0:4, 0:4].ravel())
    np.testing.assert_array_equal(patches[1], image[0:4, 4:8].ravel())
    np.testing.assert_array_equal(patches[2], image[4:8, 0:4].ravel())
    np.testing.assert_array_equal(patches[3], image[4:8, 4:8].ravel())


def test_forward_rejects_wrong_image_shape():
    model = _small_model()
    with pytest.raises(ValueError):
        model.forward(np.zeros((7, 8), dtype=np.float32))


def test_forward_returns_logits_row():
    model = _small_model()
    logits = model.forward(_image())
    assert logits.shape == (1, 3)
    np.testing.assert_array_equal(model.last_logits, logits)


def test_predict_is_argmax_of_forward():
    model = _small_model()
    image = _image()
    logits = model.forward(image)
    assert model.predict(image) == int(np.argmax(logits[0]))


def test_compute_loss_uniform_logits():
    model = _small_model()
    loss = model.compute_loss(np.zeros((1, 3), dtype=np.float32), 1)
    assert loss == pytest.approx(math.log(3), rel=1e-5)


def test_compute_loss_is_clamped():
    model = _small_model()
    logits = np.array([[0.0, -1000.0, 0.0]], dtype=np.float32)
    assert model.compute_loss(logits, 1) == pytest.approx(-math.log(1e-8), rel=1e-4)


def test_compute_loss_rejects_bad_label():
    model = _small_model()
    with pytest.raises(ValueError):
        model.compute_loss(np.zeros((1, 3), dtype=np.float32), 3)


def test_backward_before_forward_raises():
    model = _small_model()
    with pytest.raises(RuntimeError):
        model.backward(0)


def test_backward_rejects_bad_label():
    model = _small_model()
    model.forward(_image())
    with pytest.raises(ValueError):
        model.backward(-1)


def test_backward_head_bias_grad_matches_softmax():
    model = _small_model()
    logits = model.forward(_image())
    model.backward(2)
    exps = np.exp(logits[0] - logits[0].max())
    probs = exps / exps.sum()
    probs[2] -= 1.0
    np.testing.assert_allclose(model.classification_head.bias_grad[:, 0], probs, atol=1e-5)


def test_zero_grad_clears_gradients():
    model = _small_model()
    model.forward(_image())
    model.backward(0)
    assert float(np.abs(model.patch_embedding.weight_grad).sum()) > 0.0
    model.zero_grad()
    np.testing.assert_array_equal(
        model.patch_embedding.weight_grad,
        np.zeros_like(model.patch_embedding.weight_grad),
    )
    np.testing.assert_array_equal(
        model.classification_head.weight_grad,
        np.zeros_like(model.classification_head.weight_grad),
    )
    attention_grad = model.transformer_blocks[0].attention_proj.weight_grad
    np.testing.assert_array_equal(attention_grad, np.zeros_like(attention_grad))


def test_update_weights_steps_against_clipped_gradient():
    model = _small_model()
    model.forward(_image())
    model.backward(1)
    old_weight = model.classification_head.weight.copy()
    grad = np.clip(model.classification_head.weight_grad, -1.0, 1.0)
    model.update_weights(0.1)
    np.testing.assert_allclose(
        model.classification_head.weight, old_weight - 0.1 * grad, atol=1e-6
    )


def test_save_writes_config_header(tmp_path):
    model = _small_model(num_layers=2)
    path = tmp_path / "model.bin"
    model.save_model(path)
    lines = path.read_text().splitlines()
    assert lines[:8] == [
        "MODEL_CONFIG",
        "image_size 8",
        "patch_size 4",
        "d_model 8",
        "num_layers 2",
        "num_classes 3",
        "num_patches 4",
        "class_token 1 8",
    ]


def test_save_load_round_trip(tmp_path):
    model = _small_model(seed=11, num_layers=2)
    path = tmp_path / "model.bin"
    model.save_model(path)

    rng.seed(99)
    other = VisionTransformer(28, 4, 16, 1, 10)
    other.load_model(path)

    assert (other.image_size, other.patch_size, other.d_model) == (8, 4, 8)
    assert (other.num_layers, other.num_classes, other.num_patches) == (2, 3, 4)
    assert len(other.transformer_blocks) == 2
    np.testing.assert_allclose(other.class_token, model.class_token, rtol=1e-5, atol=1e-7)
    np.testing.assert_allclose(
        other.transformer_blocks[1].mlp.fc2.weight,
        model.transformer_blocks[1].mlp.fc2.weight,
        rtol=1e-5,
        atol=1e-7,
    )
    image = _image()
    np.testing.assert_allclose(
        other.forward(image), model.forward(image), rtol=1e-3, atol=1e-4
    )


def test_load_missing_file(tmp_path):
    model = _small_model()
    with pytest.raises(FileNotFoundError):
        model.load_model(tmp_path / "absent.bin")


def test_load_bad_tag(tmp_path):
    path = tmp_path / "bad.bin"
    path.write_text("NOT_A_MODEL\n")
    model = _small_model()
    with pytest.raises(ModelFormatError):
        model.load_model(path)


def test_load_wrong_tensor_name(tmp_path):
    model = _small_model()
    path = tmp_path / "model.bin"
    model.save_model(path)
    path.write_text(path.read_text().replace("class_token", "mystery_token", 1))
    with pytest.raises(ModelFormatError):
        _small_model().load_model(path)


def test_load_truncated_file(tmp_path):
    model = _small_model()
    path = tmp_path / "model.bin"
    model.save_model(path)
    text = path.read_text()
    path.write_text(text[: len(text) // 2])
    with pytest.raises(ModelFormatError):
        _small_model().load_model(path)


def test_model_format_error_is_value_error(tmp_path):
    path = tmp_path / "bad.bin"
    path.write_text("NOT_A_MODEL\n")
    model = _small_model()
    with pytest.raises(ValueError) as excinfo:
        model.load_model(path)
    assert excinfo.type is ModelFormatError